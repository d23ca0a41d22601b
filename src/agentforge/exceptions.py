"""Custom exceptions for agentforge.

All exceptions inherit from AgentForgeError for easy catching.
Each exception includes context in its message.
"""

from __future__ import annotations


class AgentForgeError(Exception):
    """Base exception for all agentforge errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(AgentForgeError):
    """Configuration loading or validation failed."""


class ServerError(AgentForgeError):
    """Communication with the LLM API failed."""


class RateLimitError(ServerError):
    """The LLM API rejected the request with HTTP 429 / quota exhausted."""


class PromptLoadError(AgentForgeError):
    """Failed to load prompt templates."""


class StateTransitionError(AgentForgeError):
    """A state update requested an illegal status transition."""


class ArtifactNotFoundError(AgentForgeError):
    """No artifact with the requested id exists in the project."""


class ProjectNotFoundError(AgentForgeError):
    """No stored project with the requested id."""


class RunInProgressError(AgentForgeError):
    """A second run was started on a session that is already running."""


class ForgeCancelled(AgentForgeError):
    """The forge run was cancelled by the caller."""
