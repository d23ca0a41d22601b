"""Tests for the state reducer and project lifecycle helpers."""

import pytest

from agentforge.exceptions import StateTransitionError
from agentforge.state import apply_update, can_transition, new_project, reset_project
from agentforge.types import (
    Artifact,
    ArtifactKind,
    ExpertRole,
    Intent,
    Language,
    ProjectMode,
    StateUpdate,
    Status,
)


def _artifact(aid: str = "market_1") -> Artifact:
    return Artifact(
        id=aid,
        role=ExpertRole.MARKET,
        title="Market",
        summary="s",
        content="c",
        kind=ArtifactKind.MARKET_ANALYSIS,
        confidence=0.5,
    )


class TestNewProject:
    def test_idle_and_empty(self):
        state = new_project("  recipe sharing app  ", ProjectMode.LITE, Language.DE)
        assert state.idea == "recipe sharing app"
        assert state.status == Status.IDLE
        assert state.mode == ProjectMode.LITE
        assert state.language == Language.DE
        assert state.artifacts == []
        assert len(state.id) == 32

    def test_empty_idea_rejected(self):
        with pytest.raises(ValueError):
            new_project("   ")


class TestTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (Status.IDLE, Status.CLARIFYING),
            (Status.CLARIFYING, Status.GENERATING),
            (Status.CLARIFYING, Status.ERROR),
            (Status.GENERATING, Status.READY),
            (Status.GENERATING, Status.ERROR),
            (Status.READY, Status.IDLE),
            (Status.ERROR, Status.IDLE),
            (Status.GENERATING, Status.GENERATING),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (Status.IDLE, Status.READY),
            (Status.IDLE, Status.GENERATING),
            (Status.READY, Status.GENERATING),
            (Status.ERROR, Status.READY),
        ],
    )
    def test_forbidden(self, current, target):
        assert not can_transition(current, target)


class TestApplyUpdate:
    def test_only_set_fields_change(self, idle_project):
        state = apply_update(idle_project, StateUpdate(status=Status.CLARIFYING))
        state = apply_update(state, StateUpdate(current_step="Thinking"))
        assert state.status == Status.CLARIFYING
        assert state.current_step == "Thinking"
        assert state.idea == idle_project.idea

    def test_returns_new_object(self, idle_project):
        state = apply_update(idle_project, StateUpdate(status=Status.CLARIFYING))
        assert state is not idle_project
        assert idle_project.status == Status.IDLE

    def test_empty_update_is_noop(self, idle_project):
        assert apply_update(idle_project, StateUpdate()) is idle_project

    def test_explicit_none_ignored(self, idle_project):
        state = apply_update(idle_project, StateUpdate(status=Status.CLARIFYING, intent=None))
        assert state.intent is None
        assert state.status == Status.CLARIFYING

    def test_illegal_transition_raises(self, idle_project):
        with pytest.raises(StateTransitionError):
            apply_update(idle_project, StateUpdate(status=Status.READY))

    def test_lists_are_copied(self, idle_project):
        artifacts = [_artifact()]
        state = apply_update(idle_project, StateUpdate(artifacts=artifacts))
        artifacts.append(_artifact("market_2"))
        assert len(state.artifacts) == 1

    def test_artifacts_replaced_wholesale(self, idle_project):
        state = apply_update(idle_project, StateUpdate(artifacts=[_artifact("a")]))
        state = apply_update(state, StateUpdate(artifacts=[_artifact("a"), _artifact("b")]))
        assert [a.id for a in state.artifacts] == ["a", "b"]


class TestResetProject:
    def test_clears_generated_content(self, clarified_project):
        state = clarified_project.model_copy(
            update={"intent": Intent(goal="g", target="t"), "artifacts": [_artifact()]}
        )
        reset = reset_project(state)
        assert reset.status == Status.IDLE
        assert reset.id == state.id
        assert reset.idea == state.idea
        assert reset.intent is None
        assert reset.artifacts == []
        assert reset.questions == []
        assert reset.answers == {}

    def test_keep_clarification(self, clarified_project):
        reset = reset_project(clarified_project, keep_clarification=True)
        assert reset.questions == clarified_project.questions
        assert reset.answers == clarified_project.answers
        assert reset.status == Status.IDLE
