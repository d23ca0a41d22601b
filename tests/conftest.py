"""Shared test fixtures for the agentforge test suite."""

from __future__ import annotations

import json

import pytest

from agentforge.config import reload_settings
from agentforge.decoders import decode_questions
from agentforge.parser import extract_json
from agentforge.prompts import clear_cache
from agentforge.retry import RetryPolicy
from agentforge.state import apply_update, new_project
from agentforge.types import ProjectState, StateUpdate, Status


# Standard mock responses for a full forge run
MOCK_CLARIFY_RESPONSE = json.dumps(
    {
        "questions": [
            {"id": "q1", "text": "Who will share recipes?", "kind": "text"},
            {
                "id": "q2",
                "text": "How should the app make money?",
                "kind": "choice",
                "options": ["Subscription", "Ads", "Free"],
            },
            {"id": "q3", "text": "Which platform comes first?", "kind": "text"},
        ]
    }
)

MOCK_INTENT_RESPONSE = json.dumps(
    {
        "goal": "Let home cooks share and discover recipes",
        "target": "Home cooks",
        "constraints": ["Mobile first", "Launch in 3 months"],
    }
)

MOCK_MODULE_MAP_RESPONSE = json.dumps(
    {
        "modules": [
            {"name": "Recipes", "description": "Create and edit recipes", "features": ["Editor"]},
            {"name": "Social", "description": "Follow cooks", "features": ["Feed", "Likes"]},
        ]
    }
)


def expert_response(title: str, confidence: float = 0.8) -> str:
    return json.dumps(
        {
            "title": title,
            "summary": f"{title} summary",
            "content": f"# {title}\n\nDetails.",
            "confidence": confidence,
            "variants": [{"label": "A", "content": "Lean"}, {"label": "B", "content": "Rich"}],
        }
    )


MOCK_PROTOTYPE_RESPONSE = "```html\n<!DOCTYPE html><html><body>Recipes</body></html>\n```"


class MockLLMClient:
    """
    A mock LLM client that returns predetermined responses in sequence.

    A response that is an Exception instance is raised instead of returned.
    Tracks all calls for assertion in tests.
    """

    def __init__(self, responses: list):
        self.responses = responses
        self.call_count = 0
        self.calls: list[dict] = []

    def call(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.6,
        max_tokens: int = 300,
        json_output: bool = False,
        model: str | None = None,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_message": user_message,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_output": json_output,
                "model": model,
            }
        )
        response = self.responses[self.call_count % len(self.responses)]
        self.call_count += 1
        if isinstance(response, BaseException):
            raise response
        return response


class Recorder:
    """Progress emitter that records updates and folds them into a state."""

    def __init__(self, state: ProjectState):
        self.state = state
        self.updates: list[StateUpdate] = []

    def __call__(self, update: StateUpdate) -> None:
        self.updates.append(update)
        self.state = apply_update(self.state, update)

    @property
    def steps(self) -> list[str]:
        return [u.current_step for u in self.updates if u.current_step]

    @property
    def statuses(self) -> list:
        return [u.status for u in self.updates if u.status is not None]


@pytest.fixture
def forge_responses():
    """Responses for a forge run with two experts (intent, map, 2 experts, prototype)."""
    return [
        MOCK_INTENT_RESPONSE,
        MOCK_MODULE_MAP_RESPONSE,
        expert_response("Market Analysis"),
        expert_response("Architecture"),
        MOCK_PROTOTYPE_RESPONSE,
    ]


@pytest.fixture
def sample_idea():
    return "recipe sharing app"


@pytest.fixture
def idle_project(sample_idea):
    return new_project(sample_idea)


@pytest.fixture
def clarified_project(idle_project):
    """A project that went through clarification and has its answers."""
    recorder = Recorder(idle_project)
    recorder(StateUpdate(status=Status.CLARIFYING))
    recorder(StateUpdate(questions=decode_questions(extract_json(MOCK_CLARIFY_RESPONSE))))
    recorder(StateUpdate(answers={"q1": "Home cooks", "q2": "Subscription", "q3": "iOS"}))
    return recorder.state


@pytest.fixture
def sleeps():
    """Delays requested by the retry policy, recorded instead of slept."""
    return []


@pytest.fixture
def fast_retry(sleeps):
    return RetryPolicy(
        max_attempts=3, base_delay=1.0, rate_limit_delay=3.0, jitter=0.0, sleep=sleeps.append
    )


@pytest.fixture(autouse=True)
def _clear_caches(monkeypatch, tmp_path):
    """Clear caches and isolate settings from the developer's environment."""
    for var in ("AGENTFORGE_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AGENTFORGE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    clear_cache()
    reload_settings()
    yield
    clear_cache()
