"""Foundation builder: intent extraction, then module mapping."""

from __future__ import annotations

import json
import logging

from agentforge.config import TEMPERATURES, TOKENS
from agentforge.decoders import decode_intent, decode_module_map
from agentforge.llm import LLMClient
from agentforge.parser import extract_json
from agentforge.prompts import render_stage
from agentforge.retry import RetryPolicy, with_retry
from agentforge.types import (
    LANGUAGE_NAMES,
    Intent,
    ModuleMap,
    ProgressEmitter,
    ProjectState,
    StateUpdate,
)

logger = logging.getLogger(__name__)


def format_answers(state: ProjectState) -> str:
    """Render question/answer pairs; unanswered questions are marked as such."""
    if not state.questions and not state.answers:
        return "(no clarification answers)"

    lines = []
    known = set()
    for q in state.questions:
        known.add(q.id)
        answer = state.answers.get(q.id, "").strip() or "(no answer)"
        lines.append(f"- {q.text}\n  Answer: {answer}")
    for qid, answer in state.answers.items():
        if qid not in known and answer.strip():
            lines.append(f"- {qid}\n  Answer: {answer.strip()}")
    return "\n".join(lines)


def build_foundations(
    client: LLMClient,
    state: ProjectState,
    emit: ProgressEmitter,
    retry: RetryPolicy | None = None,
) -> tuple[Intent, ModuleMap]:
    """Turn idea + answers into an Intent and a ModuleMap.

    Two sequential retried calls. The intent is emitted as soon as it is
    known, then intent and module map together. Badly shaped responses are
    absorbed by defaulting; only exhausted retries raise.
    """
    language = LANGUAGE_NAMES[state.language]

    # Step 1: Intent
    system_prompt, user_message = render_stage(
        "intent", idea=state.idea, answers=format_answers(state), language=language
    )
    raw_intent = with_retry(
        lambda: client.call(
            system_prompt=system_prompt,
            user_message=user_message,
            temperature=TEMPERATURES.foundation,
            max_tokens=TOKENS.foundation,
            json_output=True,
        ),
        retry,
        description="Intent extraction",
    )
    intent = decode_intent(extract_json(raw_intent))
    emit(StateUpdate(intent=intent))

    # Step 2: Module map, conditioned on the intent
    emit(StateUpdate(current_step="Mapping the product modules..."))
    system_prompt, user_message = render_stage(
        "module_map",
        idea=state.idea,
        intent=json.dumps(intent.model_dump(), ensure_ascii=False),
        language=language,
    )
    raw_map = with_retry(
        lambda: client.call(
            system_prompt=system_prompt,
            user_message=user_message,
            temperature=TEMPERATURES.foundation,
            max_tokens=TOKENS.foundation,
            json_output=True,
        ),
        retry,
        description="Module mapping",
    )
    app_map = decode_module_map(extract_json(raw_map))
    logger.debug("Module map has %d modules", len(app_map.modules))
    emit(StateUpdate(intent=intent, app_map=app_map))

    return intent, app_map
