"""LLM client abstraction over any OpenAI-compatible chat-completions API."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from agentforge.config import Settings, get_backend_config
from agentforge.exceptions import ConfigurationError, RateLimitError, ServerError
from agentforge.parser import strip_thinking

logger = logging.getLogger(__name__)


@runtime_checkable
class LLMClient(Protocol):
    """Protocol for LLM interaction; lets tests substitute mocks."""

    def call(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float,
        max_tokens: int,
        json_output: bool = False,
        model: str | None = None,
    ) -> str: ...


class OpenAIClient:
    """Wraps the OpenAI SDK pointed at any OpenAI-compatible endpoint.

    SDK-level retries are disabled: every call site wraps the client in
    with_retry(), which owns backoff. SDK errors are translated into
    ServerError / RateLimitError.
    """

    def __init__(
        self,
        base_url: str,
        model_id: str,
        api_key: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        from openai import OpenAI

        self.client = OpenAI(
            base_url=base_url,
            api_key=api_key or "not-needed",
            timeout=httpx.Timeout(timeout, connect=10.0),
            max_retries=0,
        )
        self.model_id = model_id
        self.base_url = base_url

    def call(
        self,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.6,
        max_tokens: int = 2000,
        json_output: bool = False,
        model: str | None = None,
    ) -> str:
        import openai

        model_id = model or self.model_id
        details = {"url": self.base_url, "model": model_id}
        extra: dict[str, object] = {}
        if json_output:
            extra["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(
                model=model_id,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                **extra,
            )
        except openai.RateLimitError as e:
            logger.warning("Rate limited by %s: %s", self.base_url, e)
            raise RateLimitError(f"429 rate limited: {e}", details=details) from e
        except openai.APITimeoutError as e:
            logger.error("LLM request timed out")
            raise ServerError(
                "LLM request timed out. Model may be loading or overloaded.",
                details=details,
            ) from e
        except openai.APIConnectionError as e:
            logger.error("Cannot connect to LLM server at %s", self.base_url)
            raise ServerError(
                f"Cannot connect to LLM server at {self.base_url}. Is it reachable?",
                details=details,
            ) from e
        except openai.APIStatusError as e:
            logger.warning("API error %s: %s", e.status_code, e)
            raise ServerError(
                f"LLM API error {e.status_code}: {e}",
                details=details,
            ) from e
        except openai.APIError as e:
            logger.warning("API error: %s", e)
            raise ServerError(f"LLM API error: {e}", details=details) from e

        content = _extract_content(response)
        if not content:
            logger.warning("LLM returned an empty response (model %s)", model_id)
        return content


def _extract_content(response: object) -> str:
    """Defensively extract content from an OpenAI-compatible response.

    Strips thinking blocks that leaked into the content.
    """
    choices = getattr(response, "choices", None)
    if not choices:
        return ""

    msg = choices[0].message
    if msg is None:
        return ""

    content = msg.content or ""
    if "<think>" in content:
        content = strip_thinking(content)

    return content.strip()


# ── Pre-flight Check ──────────────────────────────────────────────────


def preflight_check(base_url: str, api_key: str | None = None) -> bool:
    """Verify the API answers on /models before starting a run.

    Returns True if reachable, False otherwise (with a logged warning).
    """
    url = base_url.rstrip("/")
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    try:
        response = httpx.get(f"{url}/models", headers=headers, timeout=5.0)
    except httpx.HTTPError as e:
        logger.warning("Cannot reach LLM API at %s: %s", base_url, e)
        return False
    if response.status_code >= 400:
        logger.warning(
            "LLM API at %s answered %d on /models", base_url, response.status_code
        )
        return False
    return True


# ── Factory ───────────────────────────────────────────────────────────


def create_client(settings: Settings) -> OpenAIClient:
    """Create the client for the configured backend."""
    cfg = get_backend_config(settings.backend)
    if cfg.needs_api_key and not settings.api_key:
        raise ConfigurationError(
            f"Backend '{settings.backend.value}' needs an API key. "
            "Set AGENTFORGE_API_KEY (or GEMINI_API_KEY / OPENAI_API_KEY).",
            details={"backend": settings.backend.value},
        )
    return OpenAIClient(
        base_url=settings.resolve_url(),
        model_id=settings.resolve_model(),
        api_key=settings.api_key,
        timeout=settings.request_timeout,
    )
