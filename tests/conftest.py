"""Shared test fixtures for all test modules."""

import asyncio
from typing import AsyncIterator, Iterable, Optional

import pytest

from redraft.models.edit_request import EditRequest
from redraft.models.stream_events import StreamEvent


class FakeStreamer:
    """Stands in for LLMClient: yields scripted fragments, optionally fails."""

    def __init__(self, fragments: Iterable[str] = (), error: Optional[Exception] = None, delay: float = 0.0):
        self.fragments = list(fragments)
        self.error = error
        self.delay = delay
        self.calls = []
        self.closed = False

    async def stream_text(self, prompt, system_prompt, model=None, **kwargs) -> AsyncIterator[str]:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt, "model": model})
        try:
            for fragment in self.fragments:
                if self.delay:
                    await asyncio.sleep(self.delay)
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


class ScriptedTransport:
    """Client-side transport replaying a fixed event list per request.

    If `gate` is set, the transport waits on it before emitting events past
    index `pause_after`, so tests can interleave other work mid-stream.
    """

    def __init__(self, scripts, gate: Optional[asyncio.Event] = None, pause_after: int = 0):
        self.scripts = list(scripts)
        self.gate = gate
        self.pause_after = pause_after
        self.requests = []

    async def events(self, request: EditRequest, token) -> AsyncIterator[StreamEvent]:
        script = self.scripts[len(self.requests)]
        self.requests.append(request)
        for index, event in enumerate(script):
            if self.gate is not None and index == self.pause_after:
                await self.gate.wait()
            yield event


@pytest.fixture
def fake_streamer():
    """Factory for FakeStreamer instances."""
    return FakeStreamer


@pytest.fixture
def sample_document():
    """Small essay with three headed sections and a preamble line."""
    return (
        "Preamble line\n"
        "# Intro\n"
        "Opening paragraph.\n"
        "## Detail\n"
        "Supporting text.\n"
        "# Conclusion\n"
        "Closing words."
    )


@pytest.fixture
def scripted_transport():
    """Factory for ScriptedTransport instances."""
    return ScriptedTransport


@pytest.fixture
def make_events():
    """Build chunk events followed by a terminal event (done by default)."""
    def _make(*texts: str, terminal: Optional[StreamEvent] = None) -> list[StreamEvent]:
        events = [StreamEvent.chunk(t) for t in texts]
        events.append(terminal or StreamEvent.done())
        return events

    return _make
