"""Responder side of the streaming edit transport.

Turns a validated EditRequest into a sequence of StreamEvents: zero or more
`chunk` events relaying model fragments in the order produced, then exactly
one terminal event. `done` follows normal exhaustion of the model stream,
`error` follows any failure during generation. A cancelled request gets no
further events at all, in particular no `done`.
"""

import uuid
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from redraft.llm.prompts import (
    CHAT_SYSTEM_PROMPT,
    EDIT_SYSTEM_PROMPT,
    build_chat_prompt,
    build_edit_prompt,
)
from redraft.models.edit_request import EditRequest
from redraft.models.stream_events import StreamEvent
from redraft.services.validation import validate_edit_request
from redraft.utils.logging import get_logger

logger = get_logger(__name__)

CancelCheck = Callable[[], Awaitable[bool]]


class TextStreamer(Protocol):
    """Anything that can stream text for a prompt (LLMClient in production)."""

    def stream_text(
        self,
        prompt: str,
        system_prompt: str,
        model: Optional[str] = None,
        **kwargs,
    ) -> AsyncIterator[str]:
        ...


async def _never_cancelled() -> bool:
    return False


def render_request(request: EditRequest) -> tuple[str, str]:
    """Return (prompt, system_prompt) for a request."""
    if request.mode == "chat":
        return (
            build_chat_prompt(request.full_content, request.instruction or "", request.history),
            CHAT_SYSTEM_PROMPT,
        )

    targets = request.targets if request.edit_level in ("section", "selection") else None
    return (
        build_edit_prompt(request.full_content, request.instruction, targets),
        EDIT_SYSTEM_PROMPT,
    )


class EditResponder:
    """Relays model output for edit and chat requests as framed events."""

    def __init__(self, streamer: TextStreamer):
        """
        Args:
            streamer: Model client producing text fragments
        """
        self.streamer = streamer

    async def events(
        self,
        request: EditRequest,
        is_cancelled: Optional[CancelCheck] = None,
        request_id: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream events for one request.

        Validation runs before the first event; an invalid request raises
        EditRequestError and produces no events.

        Args:
            request: Edit or chat request
            is_cancelled: Awaitable check, consulted before every relayed
                fragment and before the completion event
            request_id: Identifier for logging (generated if omitted)

        Yields:
            chunk events, then one done or error event

        Raises:
            EditRequestError: If the request fails validation
        """
        validate_edit_request(request)

        is_cancelled = is_cancelled or _never_cancelled
        request_id = request_id or uuid.uuid4().hex[:8]
        prompt, system_prompt = render_request(request)

        logger.info(
            "edit_stream_started",
            request_id=request_id,
            mode=request.mode,
            edit_level=request.edit_level,
            model=request.model,
            target_count=len(request.targets or []),
            prompt_length=len(prompt),
        )

        fragment_count = 0
        try:
            fragments = self.streamer.stream_text(
                prompt,
                system_prompt,
                request.model,
                request_id=request_id,
            )
            async with aclosing(fragments):
                async for fragment in fragments:
                    if await is_cancelled():
                        logger.info(
                            "edit_stream_cancelled",
                            request_id=request_id,
                            fragment_count=fragment_count,
                        )
                        return
                    fragment_count += 1
                    yield StreamEvent.chunk(fragment)

            if await is_cancelled():
                logger.info(
                    "edit_stream_cancelled",
                    request_id=request_id,
                    fragment_count=fragment_count,
                )
                return

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(
                "edit_stream_failed",
                request_id=request_id,
                fragment_count=fragment_count,
                error=message,
                error_type=type(e).__name__,
            )
            yield StreamEvent.error(message)
            return

        logger.info(
            "edit_stream_completed",
            request_id=request_id,
            fragment_count=fragment_count,
        )
        yield StreamEvent.done()
