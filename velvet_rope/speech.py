"""Text-to-speech proxy for pitch narration.

Calls the OpenAI speech endpoint and returns raw mp3 bytes. Failures are
split so the caller can tell a missing credential from an upstream error;
neither ever blocks the rest of the pipeline.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "onyx"
DEFAULT_MODEL = "tts-1-hd"


class SpeechError(RuntimeError):
    """Base class for narration failures."""


class MissingCredentialError(SpeechError):
    """No API key is configured for the speech backend."""


class SpeechUpstreamError(SpeechError):
    """The speech backend could not be reached or rejected the request."""


async def synthesize(
    text: str,
    voice: str = "",
    *,
    api_key: str,
    base_url: str = "https://api.openai.com",
    model: str = DEFAULT_MODEL,
    timeout: float = 60.0,
) -> bytes:
    """Render `text` to mp3 audio with the given voice."""
    if not text or not text.strip():
        raise ValueError("Missing text")
    if not api_key:
        raise MissingCredentialError("Missing OPENAI_API_KEY")

    url = f"{base_url.rstrip('/')}/v1/audio/speech"
    body = {
        "model": model,
        "input": text,
        "voice": voice or DEFAULT_VOICE,
        "response_format": "mp3",
        "speed": 1.0,
    }
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    logger.debug("tts call voice=%s text_len=%d", body["voice"], len(text))

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, json=body, headers=headers)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.warning("TTS backend returned HTTP %d", e.response.status_code)
        raise SpeechUpstreamError(f"TTS backend returned HTTP {e.response.status_code}") from e
    except httpx.TimeoutException as e:
        raise SpeechUpstreamError(f"TTS backend timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise SpeechUpstreamError(f"Cannot reach TTS backend at {base_url}") from e

    return resp.content
