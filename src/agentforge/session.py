"""Caller-side owner of one project's state.

ProjectSession is the single place where emitted StateUpdates are folded
into the canonical ProjectState. Each update is applied under a lock,
persisted, then forwarded to listeners, so pipeline steps never touch
shared state themselves.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Sequence

from agentforge.clarify import clarify
from agentforge.exceptions import (
    ArtifactNotFoundError,
    RunInProgressError,
    StateTransitionError,
)
from agentforge.llm import LLMClient
from agentforge.pacing import Pacer
from agentforge.pipeline import run_forge
from agentforge.refine import refine
from agentforge.retry import RetryPolicy
from agentforge.state import apply_update, reset_project
from agentforge.store import ProjectStore
from agentforge.types import (
    Artifact,
    ExpertRole,
    ProjectState,
    Question,
    StateUpdate,
    Status,
)

logger = logging.getLogger(__name__)

Listener = Callable[[StateUpdate, ProjectState], None]


class ProjectSession:
    """Owns a ProjectState and runs pipeline operations against it.

    Usage:
        session = ProjectSession(new_project(idea), store=store)
        session.clarify(client)
        session.answer("q1", "Home cooks")
        session.forge(client)
    """

    def __init__(
        self,
        state: ProjectState,
        store: ProjectStore | None = None,
        listeners: Sequence[Listener] = (),
        retry: RetryPolicy | None = None,
    ) -> None:
        self._state = state
        self._store = store
        self._listeners = list(listeners)
        self._retry = retry
        self._lock = threading.Lock()
        self._running = False

    @property
    def state(self) -> ProjectState:
        return self._state

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def emit(self, update: StateUpdate) -> None:
        """Fold one update into the state, persist it, notify listeners."""
        with self._lock:
            self._state = apply_update(self._state, update)
            snapshot = self._state
            if self._store is not None:
                self._store.save(snapshot)
        for listener in self._listeners:
            listener(update, snapshot)

    @contextmanager
    def _run(self, name: str, require: Status | None = None) -> Iterator[None]:
        """Mark the session as running; with *require*, the status is checked
        under the same lock."""
        with self._lock:
            if self._running:
                raise RunInProgressError(
                    f"Cannot start {name}: a run is already in progress",
                    details={"project": self._state.id},
                )
            if require is not None and self._state.status != require:
                raise StateTransitionError(
                    f"Cannot start {name} on a project in status "
                    f"'{self._state.status.value}'; expected '{require.value}'",
                    details={"project": self._state.id},
                )
            self._running = True
        try:
            yield
        finally:
            with self._lock:
                self._running = False

    # ── Operations ────────────────────────────────────────────────────

    def clarify(self, client: LLMClient) -> list[Question]:
        """Ask for clarification questions.

        A failure that exhausts retries marks the project as errored and
        is re-raised.
        """
        with self._run("clarification"):
            try:
                return clarify(
                    client,
                    self._state.idea,
                    self.emit,
                    language=self._state.language,
                    retry=self._retry,
                )
            except StateTransitionError:
                raise
            except Exception as e:
                if self._state.status == Status.CLARIFYING:
                    self.emit(StateUpdate(status=Status.ERROR, current_step=f"Error: {e}"))
                raise

    def answer(self, question_id: str, text: str) -> None:
        answers = dict(self._state.answers)
        answers[question_id] = text
        self.emit(StateUpdate(answers=answers))

    def forge(
        self,
        client: LLMClient,
        roles: Sequence[ExpertRole] | None = None,
        pacer: Pacer | None = None,
        cancel: threading.Event | None = None,
        prototype_model: str | None = None,
    ) -> Status:
        """Run the expert forge; the project must be clarifying."""
        with self._run("forge", require=Status.CLARIFYING):
            return run_forge(
                client,
                self._state,
                self.emit,
                roles=roles,
                retry=self._retry,
                pacer=pacer,
                cancel=cancel,
                prototype_model=prototype_model,
            )

    def refine(self, client: LLMClient, artifact_id: str, instruction: str) -> Artifact:
        artifact = self.get_artifact(artifact_id)
        with self._run("refinement"):
            return refine(
                client, artifact, instruction, self._state, self.emit, retry=self._retry
            )

    def reset(self, keep_clarification: bool = False) -> None:
        """Back to idle; generated content is discarded, the idea is kept.

        With *keep_clarification* and questions on file, the project goes
        straight on to clarifying with its previous answers, ready to forge.
        """
        with self._lock:
            if self._running:
                raise RunInProgressError("Cannot reset while a run is in progress")
            self._state = reset_project(self._state, keep_clarification=keep_clarification)
            if self._store is not None:
                self._store.save(self._state)
        logger.info("Project %s reset", self._state.id)

        if keep_clarification and self._state.questions:
            self.emit(
                StateUpdate(
                    status=Status.CLARIFYING,
                    current_step="Clarification kept; ready to forge.",
                )
            )

    # ── Queries ───────────────────────────────────────────────────────

    def get_artifact(self, artifact_id: str) -> Artifact:
        """Find an artifact by full id or unambiguous id prefix."""
        matches = [a for a in self._state.artifacts if a.id.startswith(artifact_id)]
        exact = [a for a in matches if a.id == artifact_id]
        if exact:
            return exact[0]
        if len(matches) == 1:
            return matches[0]
        raise ArtifactNotFoundError(
            f"No single artifact matches '{artifact_id}' ({len(matches)} matches)",
            details={"project": self._state.id},
        )

    def unanswered(self) -> list[Question]:
        return [q for q in self._state.questions if not self._state.answers.get(q.id, "").strip()]
