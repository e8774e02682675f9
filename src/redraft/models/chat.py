"""Conversation log entries kept by the edit orchestrator."""

import time
import uuid
from typing import Literal

from pydantic import BaseModel, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    """One turn of the session's conversation log. Never persisted."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    role: Literal["user", "assistant"] = Field(..., description="Who produced the turn")

    content: str = Field(..., description="Turn text")

    timestamp: int = Field(default_factory=_now_ms, description="Creation time in epoch milliseconds")

    model_config = {"frozen": True}
