"""
Gemini Chat Client for Pustaka

Async HTTP client for the Gemini generation API with:
- Blocking generation (``generateContent``) for the synchronous answer path
- Token streaming (``streamGenerateContent?alt=sse``) re-framed as StreamEvents
- Transport-boundary-independent SSE line reassembly
- No retries: a partially consumed token stream cannot be replayed safely
"""

import json
import logging
from collections.abc import AsyncIterator, Iterator
from typing import Any

import httpx

from src.config import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_GEMINI_BASE_URL,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TIMEOUT,
    Settings,
)
from src.llm.prompt_templates import build_user_turn
from src.rag.events import StreamEvent

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "


# ============================================
# SSE Line Buffer
# ============================================


class SSELineBuffer:
    """Reassembles newline-terminated lines from arbitrary byte chunks.

    Provider frames do not line up with transport reads, so bytes are
    accumulated and only complete lines are released; the trailing partial
    line stays buffered until more bytes arrive. Lines are decoded only once
    complete, so a multi-byte character split across reads stays intact.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> Iterator[str]:
        """Append ``data`` and yield every line completed by it."""
        self._buffer.extend(data)
        while True:
            newline = self._buffer.find(b"\n")
            if newline == -1:
                return
            line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            yield line.decode("utf-8", errors="replace")

    def flush(self) -> Iterator[str]:
        """Release whatever is left once the upstream has ended."""
        if self._buffer:
            line = bytes(self._buffer)
            self._buffer.clear()
            yield line.decode("utf-8", errors="replace")


def extract_text(data: Any) -> str | None:
    """Return ``candidates[0].content.parts[0].text`` or None if absent."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def parse_sse_line(line: str) -> StreamEvent | None:
    """Translate one SSE line into a ``text`` event.

    Blank lines, keep-alives, non-data fields and payloads that are not
    valid JSON (or carry no text) yield None and are skipped.
    """
    line = line.strip()
    if not line.startswith(SSE_DATA_PREFIX):
        return None

    try:
        payload = json.loads(line[len(SSE_DATA_PREFIX) :])
    except ValueError:
        logger.debug("Dropping undecodable stream frame: %.100s", line)
        return None

    text = extract_text(payload)
    if text is None:
        return None
    return StreamEvent.text(text)


# ============================================
# Gemini Client
# ============================================


class GeminiClient:
    """Async client for Gemini text generation."""

    def __init__(
        self,
        api_key: str = "",
        model: str = DEFAULT_CHAT_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiClient":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.chat_model,
            base_url=settings.gemini_base_url,
            timeout=settings.timeout_seconds,
            temperature=settings.temperature,
            max_output_tokens=settings.max_output_tokens,
        )

    def _build_payload(self, system_prompt: str, user_message: str) -> dict:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": build_user_turn(system_prompt, user_message)}],
                }
            ],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    async def generate(self, system_prompt: str, user_message: str) -> str | None:
        """Generate a complete answer.

        Returns the first candidate's text, or None when the response body
        does not contain one. Transport errors propagate to the caller.
        """
        async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
            response = await client.post(
                f"{self.base_url}/{self.model}:generateContent",
                params={"key": self.api_key},
                json=self._build_payload(system_prompt, user_message),
            )

        if response.status_code >= 400:
            logger.error("Gemini generation failed: HTTP %d", response.status_code)

        try:
            data = response.json()
        except ValueError:
            logger.error("Gemini generation returned a non-JSON body")
            return None
        return extract_text(data)

    async def stream_completion(
        self, system_prompt: str, user_message: str
    ) -> AsyncIterator[StreamEvent]:
        """Stream the answer as ``text`` events followed by one ``done``.

        An error status or any failure while reading yields a single
        ``error`` event instead of ``done``. Closing the generator early
        closes the upstream connection.
        """
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout)) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/{self.model}:streamGenerateContent",
                    params={"key": self.api_key, "alt": "sse"},
                    json=self._build_payload(system_prompt, user_message),
                ) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        logger.error(
                            "Gemini stream error status %d: %.500s",
                            response.status_code,
                            body.decode("utf-8", errors="replace"),
                        )
                        yield StreamEvent.error(
                            f"Gemini API Error: {response.status_code}"
                        )
                        return

                    buffer = SSELineBuffer()
                    async for chunk in response.aiter_bytes():
                        for line in buffer.feed(chunk):
                            event = parse_sse_line(line)
                            if event is not None:
                                yield event
                    for line in buffer.flush():
                        event = parse_sse_line(line)
                        if event is not None:
                            yield event

            yield StreamEvent.done()
        except Exception as e:
            logger.error("Gemini stream exception: %s", e)
            yield StreamEvent.error(
                f"An error occurred while streaming the response: {e}"
            )
