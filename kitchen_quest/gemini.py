"""Gemini client: HTTP connection to the generative backend.

Everything the game asks of the AI goes through GeminiClient:

    generate_json()   — structured output (quests, micro-steps, evaluations)
    generate_image()  — reference imagery, returned as a data: URL
    synthesize()      — CDM voice, returned as raw 24 kHz mono PCM16 bytes

All calls hit POST {base_url}/models/{model}:generateContent with the key in
the x-goog-api-key header. Transient unavailability (HTTP 503, or the backend's
"high demand" message) is retried with exponential backoff; every other
failure raises GeminiError immediately.

Services receive a GeminiClient (or anything with the same methods); tests
patch httpx.AsyncClient.post or hand the services an AsyncMock.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
HIGH_DEMAND_MESSAGE = "This model is currently experiencing high demand."

T = TypeVar("T")


# ---------------------------------------------------------------------------
# GeminiError: raised for all connection and protocol failures
# ---------------------------------------------------------------------------

class GeminiError(RuntimeError):
    """Raised when the backend cannot be reached or returns an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def unavailable(self) -> bool:
        return self.status_code == 503 or HIGH_DEMAND_MESSAGE in str(self)


# ---------------------------------------------------------------------------
# Retry: exponential backoff, transient unavailability only
# ---------------------------------------------------------------------------

async def retry(
    call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run call(), retrying only on GeminiError.unavailable.

    Makes at most max_retries attempts, sleeping initial_delay, 2x, 4x, ...
    between them. The last failure is re-raised.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await call()
        except GeminiError as e:
            if not e.unavailable or attempt >= max_retries:
                logger.error("backend call failed after %d attempt(s): %s", attempt, e)
                raise
            delay = initial_delay * 2 ** (attempt - 1)
            logger.warning(
                "backend unavailable, retrying in %.1fs (attempt %d/%d)",
                delay, attempt, max_retries,
            )
            await sleep(delay)


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def _parts(data: dict) -> list[dict]:
    candidates = data.get("candidates") or []
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def response_text(data: dict) -> str:
    """Concatenate the text parts of the first candidate."""
    return "".join(p.get("text", "") for p in _parts(data))


def response_inline_data(data: dict) -> dict | None:
    """First inlineData part ({"mimeType", "data"}) of the first candidate."""
    for part in _parts(data):
        inline = part.get("inlineData")
        if inline and inline.get("data"):
            return inline
    return None


def parse_json_text(text: str) -> Any:
    """Parse JSON from model output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GeminiError(f"Backend returned invalid JSON: {e}") from e


# ---------------------------------------------------------------------------
# GeminiClient
# ---------------------------------------------------------------------------

class GeminiClient:
    """Async client for the Gemini generateContent endpoint.

    Args:
        api_key:        API key, sent as x-goog-api-key. May be empty in demo mode.
        base_url:       API root, e.g. "https://generativelanguage.googleapis.com/v1beta".
        timeout:        HTTP timeout in seconds. Defaults to 120.
        max_retries:    Attempts for transient unavailability. Defaults to 3.
        initial_delay:  First backoff delay in seconds. Defaults to 1.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._initial_delay = initial_delay
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-goog-api-key"] = self._api_key
        return headers

    def _url(self, model: str) -> str:
        return f"{self._base_url}/models/{model}:generateContent"

    async def _post(self, model: str, body: dict) -> dict:
        url = self._url(model)
        logger.debug("gemini call model=%s url=%s", model, url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GeminiError(f"Cannot connect to Gemini backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise GeminiError(f"Gemini backend returned HTTP {status}", status_code=status) from e
        except httpx.TimeoutException as e:
            raise GeminiError(f"Gemini backend timed out after {self._timeout}s") from e

        data = resp.json()
        if not isinstance(data, dict):
            raise GeminiError("Unexpected response format from Gemini backend")
        error = data.get("error")
        if error:
            raise GeminiError(
                error.get("message", "Gemini backend reported an error"),
                status_code=error.get("code"),
            )
        return data

    async def generate(
        self,
        model: str,
        parts: list[dict],
        *,
        system_instruction: str | None = None,
        generation_config: dict | None = None,
    ) -> dict:
        """Send one generateContent request (with retry) and return the raw response."""
        body: dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if generation_config:
            body["generationConfig"] = generation_config
        return await retry(
            lambda: self._post(model, body),
            max_retries=self._max_retries,
            initial_delay=self._initial_delay,
            sleep=self._sleep,
        )

    async def generate_json(
        self,
        model: str,
        prompt: str,
        *,
        schema: dict | None = None,
        system_instruction: str | None = None,
        image: bytes | None = None,
        image_mime_type: str = "image/jpeg",
    ) -> Any:
        """Ask for application/json output and return the decoded value."""
        parts: list[dict] = []
        if image is not None:
            parts.append({
                "inlineData": {
                    "mimeType": image_mime_type,
                    "data": base64.b64encode(image).decode("ascii"),
                }
            })
        parts.append({"text": prompt})
        config: dict[str, Any] = {"responseMimeType": "application/json"}
        if schema is not None:
            config["responseSchema"] = schema
        data = await self.generate(
            model, parts, system_instruction=system_instruction, generation_config=config,
        )
        text = response_text(data)
        if not text.strip():
            raise GeminiError("Gemini backend returned no text")
        return parse_json_text(text)

    async def generate_image(self, model: str, prompt: str, aspect_ratio: str = "1:1") -> str | None:
        """Generate one image; returns a data: URL, or None if no image came back."""
        data = await self.generate(
            model,
            [{"text": prompt}],
            generation_config={
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            },
        )
        inline = response_inline_data(data)
        if inline is None:
            return None
        mime = inline.get("mimeType", "image/png")
        return f"data:{mime};base64,{inline['data']}"

    async def synthesize(self, model: str, text: str, voice: str) -> bytes | None:
        """Text-to-speech with a prebuilt voice; returns raw PCM16 or None."""
        data = await self.generate(
            model,
            [{"text": text}],
            generation_config={
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
                },
            },
        )
        inline = response_inline_data(data)
        if inline is None:
            return None
        try:
            return base64.b64decode(inline["data"])
        except ValueError as e:
            raise GeminiError("Gemini backend returned undecodable audio") from e
