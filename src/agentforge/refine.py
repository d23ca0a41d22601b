"""Refinement step: instruction-driven rewrite of one artifact."""

from __future__ import annotations

import logging

from agentforge.config import TEMPERATURES, TOKENS
from agentforge.decoders import decode_refinement
from agentforge.exceptions import ArtifactNotFoundError
from agentforge.llm import LLMClient
from agentforge.parser import extract_json
from agentforge.prompts import render_stage
from agentforge.retry import RetryPolicy, with_retry
from agentforge.types import (
    LANGUAGE_NAMES,
    ROLE_LABELS,
    Artifact,
    ProgressEmitter,
    ProjectState,
    StateUpdate,
)

logger = logging.getLogger(__name__)


def refine(
    client: LLMClient,
    artifact: Artifact,
    instruction: str,
    state: ProjectState,
    emit: ProgressEmitter,
    retry: RetryPolicy | None = None,
) -> Artifact:
    """Rewrite *artifact* following *instruction* and replace it in place.

    Only the title/summary/content fields the model returns are overlaid
    on the original; everything else, including position, is kept.
    Remote failures propagate to the caller.
    """
    position = next(
        (i for i, a in enumerate(state.artifacts) if a.id == artifact.id), None
    )
    if position is None:
        raise ArtifactNotFoundError(
            f"Artifact '{artifact.id}' is not part of project {state.id}",
            details={"artifact": artifact.id, "project": state.id},
        )

    emit(StateUpdate(current_step=f"Updating {artifact.title}..."))

    system_prompt, user_message = render_stage(
        "refine",
        role_label=ROLE_LABELS[artifact.role],
        language=LANGUAGE_NAMES[state.language],
        title=artifact.title,
        content=artifact.content,
        instruction=instruction,
    )
    raw = with_retry(
        lambda: client.call(
            system_prompt=system_prompt,
            user_message=user_message,
            temperature=TEMPERATURES.refine,
            max_tokens=TOKENS.refine,
            json_output=True,
        ),
        retry,
        description=f"Refinement of {artifact.title}",
    )

    changes = decode_refinement(extract_json(raw))
    if not changes:
        logger.warning("Refinement of '%s' returned nothing usable", artifact.title)
    updated = artifact.model_copy(update=changes)

    artifacts = list(state.artifacts)
    artifacts[position] = updated
    emit(StateUpdate(artifacts=artifacts, current_step=f"{updated.title} updated"))
    return updated
