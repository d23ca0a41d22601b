"""Pure state reducer: folds emitted updates into a ProjectState."""

from __future__ import annotations

from agentforge.exceptions import StateTransitionError
from agentforge.types import Language, ProjectMode, ProjectState, StateUpdate, Status

ALLOWED_TRANSITIONS: dict[Status, frozenset[Status]] = {
    Status.IDLE: frozenset({Status.CLARIFYING}),
    Status.CLARIFYING: frozenset({Status.GENERATING, Status.ERROR}),
    Status.GENERATING: frozenset({Status.READY, Status.ERROR}),
    Status.READY: frozenset({Status.IDLE}),
    Status.ERROR: frozenset({Status.IDLE}),
}


def can_transition(current: Status, target: Status) -> bool:
    """Re-asserting the current status is always allowed."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


def apply_update(state: ProjectState, update: StateUpdate) -> ProjectState:
    """Return a new state with the fields set on *update* applied.

    Raises StateTransitionError if the update moves the status along an
    edge that is not in ALLOWED_TRANSITIONS.
    """
    changes = {
        name: getattr(update, name)
        for name in update.model_fields_set
        if getattr(update, name) is not None
    }
    if not changes:
        return state

    target = changes.get("status")
    if target is not None and not can_transition(state.status, target):
        raise StateTransitionError(
            f"Illegal status transition {state.status.value} -> {target.value}",
            details={"project": state.id},
        )

    # The new state owns its containers.
    for key in ("questions", "artifacts"):
        if key in changes:
            changes[key] = list(changes[key])
    if "answers" in changes:
        changes["answers"] = dict(changes["answers"])

    return state.model_copy(update=changes)


def new_project(
    idea: str,
    mode: ProjectMode = ProjectMode.NORMAL,
    language: Language = Language.EN,
) -> ProjectState:
    """Create an idle project for a freshly submitted idea."""
    idea = idea.strip()
    if not idea:
        raise ValueError("idea must not be empty")
    return ProjectState(idea=idea, mode=mode, language=language)


def reset_project(state: ProjectState, keep_clarification: bool = False) -> ProjectState:
    """Return the project to idle, keeping the idea and settings.

    Intent, module map and artifacts are discarded. Questions and answers
    survive only with *keep_clarification*.
    """
    return ProjectState(
        id=state.id,
        idea=state.idea,
        mode=state.mode,
        language=state.language,
        created_at=state.created_at,
        questions=list(state.questions) if keep_clarification else [],
        answers=dict(state.answers) if keep_clarification else {},
    )
