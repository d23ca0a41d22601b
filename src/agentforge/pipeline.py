"""Forge orchestration: the expert sequencer.

A forge run builds the foundations (intent + module map), then asks each
expert of the roster in turn for one artifact, and finishes with a
prototype synthesized from everything produced. Every step reports
through the progress emitter; the caller owns the state.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Sequence

from agentforge.config import TEMPERATURES, TOKENS
from agentforge.decoders import decode_artifact, new_artifact_id
from agentforge.exceptions import ForgeCancelled
from agentforge.foundations import build_foundations
from agentforge.llm import LLMClient
from agentforge.pacing import Pacer
from agentforge.parser import extract_json, strip_code_fences
from agentforge.prompts import get_expert_task, render_stage
from agentforge.retry import RetryPolicy, with_retry
from agentforge.types import (
    LANGUAGE_NAMES,
    ROLE_LABELS,
    ROLE_ROSTERS,
    Artifact,
    ArtifactKind,
    ExpertRole,
    Intent,
    ModuleMap,
    ProgressEmitter,
    ProjectState,
    StateUpdate,
    Status,
)

logger = logging.getLogger(__name__)

PROTOTYPE_TITLE = "Master Prototype"
PROTOTYPE_SUMMARY = "Functional interface generated from the expert dossier."


# ── Prompt context ────────────────────────────────────────────────────


def _summarize_artifacts(artifacts: Sequence[Artifact]) -> str:
    if not artifacts:
        return "(none yet)"
    return "\n".join(
        f"- [{ROLE_LABELS[a.role]}] {a.title}: {a.summary}" for a in artifacts
    )


def _to_json(model) -> str:
    if model is None:
        return "{}"
    return json.dumps(model.model_dump(), ensure_ascii=False)


# ── Steps ─────────────────────────────────────────────────────────────


def run_expert(
    client: LLMClient,
    role: ExpertRole,
    state: ProjectState,
    intent: Intent,
    app_map: ModuleMap,
    previous: Sequence[Artifact],
    retry: RetryPolicy | None = None,
    model: str | None = None,
) -> Artifact:
    """Ask one expert for its artifact."""
    system_prompt, user_message = render_stage(
        "expert",
        role_label=ROLE_LABELS[role],
        language=LANGUAGE_NAMES[state.language],
        idea=state.idea,
        intent=_to_json(intent),
        app_map=_to_json(app_map),
        previous=_summarize_artifacts(previous),
        task=get_expert_task(role),
    )
    raw = with_retry(
        lambda: client.call(
            system_prompt=system_prompt,
            user_message=user_message,
            temperature=TEMPERATURES.expert,
            max_tokens=TOKENS.expert,
            json_output=True,
            model=model,
        ),
        retry,
        description=ROLE_LABELS[role],
    )
    return decode_artifact(extract_json(raw), role, raw)


def synthesize_prototype(
    client: LLMClient,
    state: ProjectState,
    intent: Intent,
    artifacts: Sequence[Artifact],
    retry: RetryPolicy | None = None,
    model: str | None = None,
) -> Artifact:
    """Generate the HTML prototype. Raw text output, not JSON."""
    system_prompt, user_message = render_stage(
        "prototype",
        idea=state.idea,
        intent=_to_json(intent),
        artifacts=_summarize_artifacts(artifacts),
    )
    raw = with_retry(
        lambda: client.call(
            system_prompt=system_prompt,
            user_message=user_message,
            temperature=TEMPERATURES.prototype,
            max_tokens=TOKENS.prototype,
            model=model,
        ),
        retry,
        description="Prototype synthesis",
    )
    return Artifact(
        id=new_artifact_id(ExpertRole.PROTOTYPER),
        role=ExpertRole.PROTOTYPER,
        title=PROTOTYPE_TITLE,
        summary=PROTOTYPE_SUMMARY,
        content=strip_code_fences(raw),
        kind=ArtifactKind.PROTOTYPE,
        confidence=1.0,
    )


# ── Orchestration ─────────────────────────────────────────────────────


def _check_cancelled(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ForgeCancelled("Forge cancelled")


def run_forge(
    client: LLMClient,
    state: ProjectState,
    emit: ProgressEmitter,
    roles: Sequence[ExpertRole] | None = None,
    retry: RetryPolicy | None = None,
    pacer: Pacer | None = None,
    cancel: threading.Event | None = None,
    prototype_model: str | None = None,
) -> Status:
    """Execute a full forge run and return its terminal status.

    Experts run strictly one after another in roster order (the project's
    mode decides the roster unless *roles* is given). The pacer, if any,
    is asked for permission before every remote call. *cancel* is checked
    before each expert and before the prototype.

    Any exception ends the run with status=error and the message in
    current_step. Artifacts already emitted are kept.
    """
    roster = list(roles) if roles is not None else ROLE_ROSTERS[state.mode]
    artifacts: list[Artifact] = []

    try:
        emit(StateUpdate(status=Status.GENERATING, current_step="Extracting the intent..."))

        # Step 1: Foundations
        intent, app_map = build_foundations(client, state, emit, retry=retry)

        # Step 2: Sequential experts
        for index, role in enumerate(roster, start=1):
            _check_cancelled(cancel)
            label = ROLE_LABELS[role]
            emit(
                StateUpdate(
                    current_step=f"The {label} is forging their part ({index}/{len(roster)})..."
                )
            )
            if pacer is not None:
                pacer.acquire()

            artifact = run_expert(client, role, state, intent, app_map, artifacts, retry=retry)
            artifacts = [*artifacts, artifact]
            emit(StateUpdate(artifacts=artifacts))
            logger.info("%s delivered '%s'", label, artifact.title)

        # Step 3: Prototype synthesis
        _check_cancelled(cancel)
        emit(StateUpdate(current_step="Generating the interactive prototype..."))
        if pacer is not None:
            pacer.acquire()
        prototype = synthesize_prototype(
            client, state, intent, artifacts, retry=retry, model=prototype_model
        )
        artifacts = [*artifacts, prototype]

        emit(
            StateUpdate(
                artifacts=artifacts,
                status=Status.READY,
                current_step="Forge complete",
            )
        )
        return Status.READY

    except ForgeCancelled:
        logger.info("Forge cancelled after %d artifacts", len(artifacts))
        emit(StateUpdate(status=Status.ERROR, current_step="Forge cancelled"))
        return Status.ERROR
    except Exception as e:
        logger.exception("Forge run failed")
        emit(StateUpdate(status=Status.ERROR, current_step=f"Error: {e}"))
        return Status.ERROR
