"""Clarification step: ask the model for follow-up questions about an idea."""

from __future__ import annotations

import logging

from agentforge.config import TEMPERATURES, TOKENS
from agentforge.decoders import decode_questions
from agentforge.llm import LLMClient
from agentforge.parser import extract_json
from agentforge.prompts import render_stage
from agentforge.retry import RetryPolicy, with_retry
from agentforge.types import (
    LANGUAGE_NAMES,
    Language,
    ProgressEmitter,
    Question,
    StateUpdate,
    Status,
)

logger = logging.getLogger(__name__)


def clarify(
    client: LLMClient,
    idea: str,
    emit: ProgressEmitter,
    language: Language = Language.EN,
    retry: RetryPolicy | None = None,
) -> list[Question]:
    """Obtain 3–5 clarification questions for *idea*.

    Emits the clarifying status before the remote call, then the
    normalized questions. Question content is passed through unchecked.
    A remote failure that exhausts retries propagates.
    """
    emit(
        StateUpdate(
            status=Status.CLARIFYING,
            current_step="The clarification agent is analysing your idea...",
        )
    )

    system_prompt, user_message = render_stage(
        "clarify", idea=idea, language=LANGUAGE_NAMES[language]
    )
    raw = with_retry(
        lambda: client.call(
            system_prompt=system_prompt,
            user_message=user_message,
            temperature=TEMPERATURES.clarify,
            max_tokens=TOKENS.clarify,
            json_output=True,
        ),
        retry,
        description="Clarification",
    )

    questions = decode_questions(extract_json(raw))
    if not questions:
        logger.warning("Clarification returned no questions")
    logger.debug("Clarification produced %d questions", len(questions))

    emit(
        StateUpdate(
            questions=questions,
            current_step="Answer the questions to launch the forge.",
        )
    )
    return questions
