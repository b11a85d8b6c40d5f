"""Generator clients: HTTP connections to the Gemini generateContent API.

The narrative service injects callables matching these protocols:

    async def __call__(self, stage: str, prompt: str) -> str: ...   # LLM
    async def __call__(self, prompt: str) -> str: ...               # ImageGenerator

`stage` identifies the caller ("story" or "dungeon"). Implementations may use
it for logging; the HTTP client ignores it otherwise.

Two implementations are provided:

    GeminiLLM      text generation; sends an optional JSON response schema
                    so the model returns structured output.
    GeminiImages   image generation; returns the first inline image as a
                    data: URL.

Both raise LLMError for every connection, HTTP and format failure. Tests use
StubLLM / StubImages (defined in conftest.py) instead.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


class ImageGenerator(Protocol):
    async def __call__(self, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------

class _GeminiClient:
    """Base for generateContent clients.

    Args:
        api_key:  Gemini API key, sent as the x-goog-api-key header.
        model:    Model identifier, e.g. "gemini-2.5-flash".
        base_url: API root. Defaults to the public endpoint.
        timeout:  HTTP timeout in seconds. Defaults to 60.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def url(self) -> str:
        return f"{self._base_url}/v1beta/models/{self._model}:generateContent"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self._api_key}

    async def _post(self, body: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self.url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to generator at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"Generator returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"Generator timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Request to generator failed: {e!r}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise LLMError("Generator returned a non-JSON body") from e

    @staticmethod
    def _parts(data: Any) -> list[dict[str, Any]]:
        if not isinstance(data, dict):
            raise LLMError("Unexpected response format: body is not an object")
        candidates = data.get("candidates")
        if not candidates or not isinstance(candidates, list):
            raise LLMError("Unexpected response format: no candidates")
        first = candidates[0]
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            raise LLMError("Unexpected response format: no content parts")
        parts = [p for p in parts if isinstance(p, dict)]
        if not parts:
            raise LLMError("Unexpected response format: no content parts")
        return parts


# ---------------------------------------------------------------------------
# GeminiLLM: structured text generation
# ---------------------------------------------------------------------------

class GeminiLLM(_GeminiClient):
    """Async text client. With response_schema set, asks for JSON output."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 60.0,
        response_schema: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(api_key, model, base_url, timeout)
        self._schema = response_schema

    def _build_request(self, prompt: str) -> dict[str, Any]:
        body: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if self._schema is not None:
            body["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": self._schema,
            }
        return body

    def _parse_response(self, data: dict[str, Any]) -> str:
        texts = [p.get("text") for p in self._parts(data)]
        text = "".join(t for t in texts if isinstance(t, str))
        if not text:
            raise LLMError("Empty response from generator")
        return text

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("llm call stage=%s model=%s prompt_len=%d", stage, self._model, len(prompt))
        text = self._parse_response(await self._post(self._build_request(prompt)))
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# GeminiImages: scene illustrations
# ---------------------------------------------------------------------------

class GeminiImages(_GeminiClient):
    """Async image client. Returns a data: URL for the first inline image."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash-image",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 60.0,
    ) -> None:
        super().__init__(api_key, model, base_url, timeout)

    async def __call__(self, prompt: str) -> str:
        logger.debug("image call model=%s prompt_len=%d", self._model, len(prompt))
        data = await self._post({"contents": [{"parts": [{"text": prompt}]}]})
        for part in self._parts(data):
            inline = part.get("inlineData")
            if isinstance(inline, dict) and inline.get("data"):
                mime = inline.get("mimeType", "image/png")
                return f"data:{mime};base64,{inline['data']}"
        raise LLMError("Generator returned no image data")


# ---------------------------------------------------------------------------
# LLMError: raised by both clients for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the generator cannot be reached or returns an error."""
