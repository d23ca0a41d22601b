"""Decode untyped model output into typed records, defaulting every field.

Model responses are never trusted: each decoder accepts whatever
extract_json() produced (dict, list, scalar, or {}) and always returns a
valid record.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from agentforge.types import (
    ROLE_ARTIFACT_KINDS,
    ROLE_LABELS,
    Artifact,
    ExpertRole,
    Intent,
    Module,
    ModuleMap,
    Question,
    QuestionKind,
    Variant,
)

logger = logging.getLogger(__name__)

DEFAULT_GOAL = "Goal not specified"
DEFAULT_TARGET = "Target audience not specified"
DEFAULT_SUMMARY = "Expert synthesis."
DEFAULT_CONFIDENCE = 0.9

REFINABLE_FIELDS = ("title", "summary", "content")


# ── Field helpers ─────────────────────────────────────────────────────


def as_object(raw: Any) -> dict[str, Any]:
    """Dict as-is; a list contributes its first element; anything else is {}."""
    if isinstance(raw, list):
        raw = raw[0] if raw else {}
    return raw if isinstance(raw, dict) else {}


def text_field(value: Any, default: str = "") -> str:
    """Non-blank string, or *default*. Numbers are stringified."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def content_field(value: Any, default: str = "") -> str:
    """Document body, returned verbatim when non-blank."""
    if isinstance(value, str) and value.strip():
        return value
    return default


def text_list(value: Any) -> list[str]:
    """List of non-blank strings. A single string becomes a one-item list."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items = (text_field(v) for v in value)
    return [item for item in items if item]


def optional_object(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) and value else None


def clamp_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return min(1.0, max(0.0, float(value)))


# ── Clarification ─────────────────────────────────────────────────────


def decode_questions(raw: Any) -> list[Question]:
    """Normalize clarification output into Questions.

    Accepts ``{"questions": [...]}`` or a bare list. Each item may be a
    string or an object. Missing or duplicate ids fall back to ``q{n}``.
    """
    if isinstance(raw, dict):
        items = raw.get("questions", [])
    else:
        items = raw
    if not isinstance(items, list):
        return []

    questions: list[Question] = []
    seen: set[str] = set()
    for index, item in enumerate(items, start=1):
        fallback_id = f"q{index}"
        if isinstance(item, str):
            text, qid, kind, options = item.strip(), fallback_id, QuestionKind.TEXT, None
        elif isinstance(item, dict):
            text = text_field(item.get("text") or item.get("question"))
            qid = text_field(item.get("id"), fallback_id)
            options = text_list(item.get("options"))
            raw_kind = text_field(item.get("kind") or item.get("type")).lower()
            if raw_kind == QuestionKind.CHOICE.value and options:
                kind = QuestionKind.CHOICE
            else:
                kind, options = QuestionKind.TEXT, None
        else:
            continue

        if qid in seen:
            qid = fallback_id
        while qid in seen:
            qid = f"{qid}_{index}"
        seen.add(qid)
        questions.append(Question(id=qid, text=text, kind=kind, options=options))
    return questions


# ── Foundations ───────────────────────────────────────────────────────


def decode_intent(raw: Any) -> Intent:
    data = as_object(raw)
    return Intent(
        goal=text_field(data.get("goal"), DEFAULT_GOAL),
        target=text_field(data.get("target"), DEFAULT_TARGET),
        constraints=text_list(data.get("constraints")),
    )


def decode_module_map(raw: Any) -> ModuleMap:
    """Accepts ``{"modules": [...]}``, a list wrapping that object, or a bare
    list of module objects."""
    if isinstance(raw, list) and raw and isinstance(raw[0], dict) and "modules" not in raw[0]:
        items: Any = raw
    else:
        items = as_object(raw).get("modules", [])
    if not isinstance(items, list):
        return ModuleMap()

    modules = []
    for index, item in enumerate(items, start=1):
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, dict):
            continue
        modules.append(
            Module(
                name=text_field(item.get("name"), f"Module {index}"),
                description=text_field(item.get("description")),
                features=text_list(item.get("features")),
            )
        )
    return ModuleMap(modules=modules)


# ── Artifacts ─────────────────────────────────────────────────────────


def new_artifact_id(role: ExpertRole) -> str:
    """Role + millisecond timestamp, with a random suffix for same-ms calls."""
    return f"{role.value}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def decode_variants(value: Any) -> list[Variant]:
    if not isinstance(value, list):
        return []
    variants = []
    for index, item in enumerate(value):
        label = f"Variant {chr(ord('A') + index)}" if index < 26 else f"Variant {index + 1}"
        if isinstance(item, str) and item.strip():
            variants.append(Variant(label=label, content=item.strip()))
        elif isinstance(item, dict):
            variants.append(
                Variant(
                    label=text_field(item.get("label") or item.get("name") or item.get("title"), label),
                    content=text_field(item.get("content") or item.get("description")),
                )
            )
    return variants


def decode_artifact(raw: Any, role: ExpertRole, raw_text: str) -> Artifact:
    """Build an expert Artifact from parsed output.

    The model's content is kept verbatim; without one, the raw reply text
    stands in. When the response held no JSON object at all, confidence
    drops to 0.0.
    """
    data = as_object(raw)
    if not data:
        logger.warning(
            "%s returned no usable JSON; keeping raw text with zero confidence",
            ROLE_LABELS[role],
        )
    return Artifact(
        id=new_artifact_id(role),
        role=role,
        title=text_field(data.get("title"), ROLE_LABELS[role]),
        summary=text_field(data.get("summary"), DEFAULT_SUMMARY),
        content=content_field(data.get("content"), raw_text.strip()),
        kind=ROLE_ARTIFACT_KINDS[role],
        confidence=clamp_confidence(data.get("confidence")) if data else 0.0,
        vitals=optional_object(data.get("vitals")),
        audit=optional_object(data.get("audit")),
        design_system=optional_object(data.get("design_system")),
        variants=decode_variants(data.get("variants")),
    )


def decode_refinement(raw: Any) -> dict[str, str]:
    """Only the refinable fields the model actually returned."""
    data = as_object(raw)
    changes = {}
    for name in REFINABLE_FIELDS:
        if name == "content":
            value = content_field(data.get(name))
        else:
            value = text_field(data.get(name))
        if value:
            changes[name] = value
    return changes
