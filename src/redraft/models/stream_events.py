"""Framed events exchanged over the streaming edit transport."""

import json
from typing import Literal

from pydantic import BaseModel, Field


class StreamEvent(BaseModel):
    """
    One self-delimited unit on the wire.

    - chunk: data is a text fragment to append
    - done: data is empty; terminal, success
    - error: data is a human-readable message; terminal, failure

    Wire form (Server-Sent Events):
        data: {"type": "chunk", "data": "Once"}\\n\\n
    """

    type: Literal["chunk", "done", "error"] = Field(..., description="Event kind")

    data: str = Field(default="", description="Fragment text or error message")

    model_config = {"frozen": True}

    @classmethod
    def chunk(cls, text: str) -> "StreamEvent":
        return cls(type="chunk", data=text)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(type="done", data="")

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(type="error", data=message)

    @property
    def is_terminal(self) -> bool:
        return self.type != "chunk"

    def to_sse(self) -> str:
        """Encode as one SSE frame."""
        return f"data: {json.dumps({'type': self.type, 'data': self.data})}\n\n"
