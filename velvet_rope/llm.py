"""Generative backend client used by the profile, pitch and simulation stages.

Anything awaitable as `llm(stage, prompt) -> str` can drive the orchestrator.
`stage` is one of "enrichment", "pitches" or "simulation" and sets the
completion budget for HttpLLM.

HttpLLM talks to the Anthropic Messages API or an OpenAI-compatible chat
endpoint. OfflineLLM is what the app uses when no key is configured: it fails
every call, so each stage goes straight to its local fallback.

Every failure surfaces as LLMError. The orchestrator treats that as a hard
failure for the rest of the stage.
"""

from __future__ import annotations

import logging
from typing import Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol - every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM - connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["anthropic", "openai"]

STAGE_MAX_TOKENS: dict[str, int] = {
    "enrichment": 2000,
    "pitches": 3000,
    "simulation": 8000,
}

ANTHROPIC_VERSION = "2023-06-01"


class HttpLLM:
    """Async HTTP client for chat-completion backends.

    Supported formats:
      "anthropic"  - POST /v1/messages  {"model", "max_tokens", "messages"}
                     Response: {"content": [{"type": "text", "text": "..."}]}
      "openai"     - POST /v1/chat/completions  {"model", "max_tokens", "messages"}
                     Response: {"choices": [{"message": {"content": "..."}}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.anthropic.com".
        api_key:         API key, or empty string if not required.
        provider_format: Wire format to use. Defaults to "anthropic".
        model:           Model identifier sent with every request.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "anthropic",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._format == "anthropic":
            headers["anthropic-version"] = ANTHROPIC_VERSION
            if self._api_key:
                headers["x-api-key"] = self._api_key
        elif self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, stage: str, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        body: dict = {
            "max_tokens": STAGE_MAX_TOKENS.get(stage, 2000),
            "messages": [{"role": "user", "content": prompt}],
        }
        if self._model:
            body["model"] = self._model
        if self._format == "openai":
            return f"{self._base_url}/v1/chat/completions", body
        return f"{self._base_url}/v1/messages", body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "openai":
            choices = data.get("choices")
            if not choices or "content" not in choices[0].get("message", {}):
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["message"]["content"] or ""

        content = data.get("content")
        if not content or not isinstance(content, list):
            raise LLMError("Unexpected response format from Anthropic backend")
        texts = [block.get("text", "") for block in content if block.get("type") == "text"]
        if not texts:
            raise LLMError("Unexpected response format from Anthropic backend")
        return "".join(texts)

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(stage, prompt)
        logger.debug("%s request to %s (%d chars, max_tokens=%d)",
                     stage, url, len(prompt), body["max_tokens"])

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
                data = resp.json()
            except httpx.TimeoutException as e:
                raise LLMError(f"{stage}: LLM backend timed out after {self._timeout}s") from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                raise LLMError(f"{stage}: LLM backend returned HTTP {status}") from e
            except httpx.HTTPError as e:
                raise LLMError(f"{stage}: Cannot connect to LLM backend at {self._base_url}") from e
            except ValueError as e:
                raise LLMError(f"{stage}: Unexpected response format (body is not JSON)") from e

        text = self._parse_response(data)
        logger.debug("%s response: %d chars", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# OfflineLLM - no backend configured
# ---------------------------------------------------------------------------

class OfflineLLM:
    """Raises LLMError on every call. No network calls.

    Used when no API key is configured, so the pipeline runs entirely on
    its deterministic fallbacks.
    """

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("OfflineLLM stage=%s prompt_len=%d", stage, len(prompt))
        raise LLMError("No LLM backend configured")


# ---------------------------------------------------------------------------
# LLMError - raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
