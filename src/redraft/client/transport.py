"""Initiator side of the streaming edit transport.

A transport turns an EditRequest into an async stream of StreamEvents.
run_stream() consumes that stream, accumulates chunk text in arrival order,
and reduces it to one of three outcomes: completed, error, or cancelled.

Two transports share the same event semantics:
- HttpEditTransport: POST /api/edit on a running server, decoding SSE frames
- LocalEditTransport: the responder called in-process (no HTTP)
"""

import asyncio
import json
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol

import httpx
from pydantic import ValidationError

from redraft.models.edit_request import EditRequest
from redraft.models.stream_events import StreamEvent
from redraft.services.edit_stream import EditResponder
from redraft.utils.logging import get_logger

logger = get_logger(__name__)


class CancelToken:
    """Cooperative cancellation flag for one in-flight request."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class StreamOutcome(str, Enum):
    """How a streaming exchange ended."""

    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StreamResult:
    """Final state of one exchange.

    Attributes:
        outcome: completed, error or cancelled
        text: Accumulated chunk text (partial for error/cancelled)
        error: Message for the error outcome, None otherwise
    """

    outcome: StreamOutcome
    text: str = ""
    error: Optional[str] = None


class SSEDecoder:
    """Incremental decoder for `data: {...}` frames.

    Input may split anywhere, including in the middle of a line; incomplete
    trailing text is buffered until the rest arrives. Units that are not
    valid events are logged and skipped.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> list[StreamEvent]:
        """Add received text and return every event completed by it."""
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        events = []
        for line in lines:
            event = self._decode_line(line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> list[StreamEvent]:
        """Decode whatever is left once the input has ended."""
        remainder, self._buffer = self._buffer, ""
        event = self._decode_line(remainder.rstrip("\r"))
        return [event] if event is not None else []

    @staticmethod
    def _decode_line(line: str) -> Optional[StreamEvent]:
        if not line.startswith("data:"):
            return None
        payload = line[5:].lstrip(" ")
        try:
            return StreamEvent.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(
                "stream_unit_malformed",
                line=line,
                error=str(e),
            )
            return None


class EditTransport(Protocol):
    """Produces the event stream for one request."""

    def events(self, request: EditRequest, token: CancelToken) -> AsyncIterator[StreamEvent]:
        ...


class TransportError(Exception):
    """Failure before any event could be received (bad status, no body)."""


class HttpEditTransport:
    """Streams edit events from a Redraft server over HTTP."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            base_url: Server root, e.g. "http://127.0.0.1:3001"
            client: Optional shared httpx client (not closed by the transport)
        """
        self.base_url = base_url.rstrip("/")
        self._client = client
        self.timeout = httpx.Timeout(connect=10.0, read=None, write=10.0, pool=10.0)

    async def events(self, request: EditRequest, token: CancelToken) -> AsyncIterator[StreamEvent]:
        """POST the request and yield decoded events as they arrive.

        Raises:
            TransportError: If the server rejects the request
            httpx.HTTPError: On network failures
        """
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream("POST", f"{self.base_url}/api/edit", json=request.to_wire()) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise TransportError(_failure_message(response))

                decoder = SSEDecoder()
                async for text in response.aiter_text():
                    if token.is_cancelled:
                        return
                    for event in decoder.feed(text):
                        yield event
                for event in decoder.flush():
                    yield event
        finally:
            if self._client is None:
                await client.aclose()


def _failure_message(response: httpx.Response) -> str:
    try:
        detail = response.json().get("error")
    except (json.JSONDecodeError, ValueError, AttributeError):
        detail = None
    if detail:
        return f"Request failed: {response.status_code}: {detail}"
    return f"Request failed: {response.status_code}"


class LocalEditTransport:
    """Runs the responder in-process, bypassing HTTP."""

    def __init__(self, responder: EditResponder):
        self.responder = responder

    async def events(self, request: EditRequest, token: CancelToken) -> AsyncIterator[StreamEvent]:
        async def is_cancelled() -> bool:
            return token.is_cancelled

        async for event in self.responder.events(request, is_cancelled=is_cancelled):
            yield event


async def run_stream(
    transport: EditTransport,
    request: EditRequest,
    on_chunk: Callable[[str], None],
    token: CancelToken,
) -> StreamResult:
    """Consume one exchange and reduce it to a StreamResult.

    on_chunk receives the accumulated text after each fragment. The token is
    checked before every fragment is applied, so nothing is delivered after
    cancellation. Network and decode failures become an error outcome; they
    are not raised. asyncio cancellation of the calling task is reported as
    a cancelled outcome when the token was set, and re-raised otherwise.

    Args:
        transport: Event source
        request: Request to send
        on_chunk: Called with the accumulated text after each chunk
        token: Cancellation token for this request

    Returns:
        StreamResult
    """
    accumulated = ""
    events = transport.events(request, token)

    try:
        async with aclosing(events):
            async for event in events:
                if token.is_cancelled:
                    return StreamResult(StreamOutcome.CANCELLED, accumulated)

                if event.type == "chunk":
                    accumulated += event.data
                    on_chunk(accumulated)
                elif event.type == "done":
                    return StreamResult(StreamOutcome.COMPLETED, accumulated)
                else:
                    return StreamResult(StreamOutcome.ERROR, accumulated, event.data)

    except asyncio.CancelledError:
        if token.is_cancelled:
            return StreamResult(StreamOutcome.CANCELLED, accumulated)
        raise

    except (TransportError, httpx.HTTPError) as e:
        if token.is_cancelled:
            return StreamResult(StreamOutcome.CANCELLED, accumulated)
        logger.warning("edit_stream_transport_error", error=str(e), error_type=type(e).__name__)
        return StreamResult(StreamOutcome.ERROR, accumulated, str(e) or type(e).__name__)

    if token.is_cancelled:
        return StreamResult(StreamOutcome.CANCELLED, accumulated)

    return StreamResult(StreamOutcome.ERROR, accumulated, "Stream ended before completion")
