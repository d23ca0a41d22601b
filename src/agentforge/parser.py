"""Response parsing: thinking-model stripping, code fences, and JSON extraction."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_LEADING_JSON_FENCE_RE = re.compile(r"^```(?:json)?[ \t]*\n?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\n?```\s*$")
# Greedy outermost match: first opening bracket to the last closing one.
_JSON_SPAN_RE = re.compile(r"(\{.*\}|\[.*\])", re.DOTALL)
_ANY_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*")


def strip_thinking(text: str) -> str:
    """Remove <think>...</think> blocks from thinking-model output.

    Handles both closed tags and unclosed tags (model hit token limit
    mid-thought and never emitted </think>). Must be called before any
    structured output parsing.
    """
    text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL)
    text = re.sub(r"<think>.*$", "", text, flags=re.DOTALL)  # unclosed tag
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def extract_json(text: str | None) -> Any:
    """Best-effort extraction of a JSON object or array from model output.

    Strips a leading ```json fence, then parses the first outermost
    ``{...}`` or ``[...]`` span. Returns ``{}`` when nothing parses;
    never raises.
    """
    if not text:
        return {}

    cleaned = _LEADING_JSON_FENCE_RE.sub("", text.strip())
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned)

    m = _JSON_SPAN_RE.search(cleaned)
    if not m:
        return {}

    try:
        return json.loads(m.group(1))
    except (ValueError, RecursionError) as e:
        logger.debug("JSON extraction failed: %s", e)
        return {}


def strip_code_fences(text: str) -> str:
    """Remove every ``` marker (with optional language tag) from raw text."""
    return _ANY_FENCE_RE.sub("", text or "").strip()
