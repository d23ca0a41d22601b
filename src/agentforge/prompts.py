"""Load and access prompts from the YAML configuration file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from agentforge.exceptions import PromptLoadError
from agentforge.types import ExpertRole

STAGES = ("clarify", "intent", "module_map", "expert", "prototype", "refine")


def _default_prompts_path() -> Path:
    """Return the bundled prompts.yaml path."""
    return Path(__file__).resolve().parent / "prompts.yaml"


@lru_cache(maxsize=1)
def load_prompts(path: str | None = None) -> dict[str, Any]:
    """Load and cache all prompts from the YAML file."""
    target = Path(path) if path else _default_prompts_path()
    try:
        with open(target, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise PromptLoadError(
            f"Cannot load prompts from {target}: {e}",
            details={"path": str(target)},
        ) from e
    if not isinstance(data, dict):
        raise PromptLoadError(f"Prompt file {target} is not a mapping")
    return data


def clear_cache() -> None:
    """Clear the prompt cache (useful for testing)."""
    load_prompts.cache_clear()


def get_stage_prompts(stage: str, prompts: dict | None = None) -> tuple[str, str]:
    """Return the (system_prompt, user_template) pair for a pipeline stage."""
    p = prompts or load_prompts()
    try:
        section = p[stage]
        return section["system_prompt"], section["user_template"]
    except (KeyError, TypeError) as e:
        raise PromptLoadError(f"Missing prompt section for stage '{stage}'") from e


def render_stage(stage: str, prompts: dict | None = None, **values: Any) -> tuple[str, str]:
    """Format both templates of *stage* with the same values.

    Values are substituted once; braces inside them are not interpreted.
    """
    system_template, user_template = get_stage_prompts(stage, prompts)
    try:
        return system_template.format(**values), user_template.format(**values)
    except (KeyError, IndexError, ValueError) as e:
        raise PromptLoadError(f"Prompt template for stage '{stage}' is invalid: {e}") from e


def get_expert_task(role: ExpertRole, prompts: dict | None = None) -> str:
    p = prompts or load_prompts()
    try:
        return p["expert"]["tasks"][role.value]
    except (KeyError, TypeError) as e:
        raise PromptLoadError(f"No expert task defined for role '{role.value}'") from e
