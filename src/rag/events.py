"""
Stream Events for Pustaka

The outbound event protocol shared by the completion streamer, the research
assistant and the HTTP adapter. Each event is framed on the wire as a single
Server-Sent Events ``data:`` line.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel

EventType = Literal["sources", "text", "done", "error"]


class StreamEvent(BaseModel):
    """One unit of the outbound answer stream.

    ``content`` is a list of source dicts for ``sources``, a text fragment
    for ``text``, an error message for ``error`` and empty for ``done``.
    """

    type: EventType
    content: Any = ""

    @classmethod
    def sources(cls, sources: list[dict[str, Any]]) -> "StreamEvent":
        return cls(type="sources", content=sources)

    @classmethod
    def text(cls, fragment: str) -> "StreamEvent":
        return cls(type="text", content=fragment)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(type="done", content="")

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(type="error", content=message)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("done", "error")


def format_sse(event: StreamEvent) -> str:
    """Frame an event as ``data: <json>`` followed by a blank line."""
    payload = json.dumps(event.model_dump(), ensure_ascii=False)
    return f"data: {payload}\n\n"
