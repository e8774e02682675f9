"""Client-side controller for edit and chat exchanges.

EditOrchestrator keeps the session's conversation log and guarantees that at
most one request is in flight: sending a new request cancels the previous
one first, and anything the previous request still receives is dropped.

Lifecycle of one send():
1. Validate (EditRequestError is raised, nothing else changes)
2. Become the active request and cancel the predecessor (no await yet)
3. Append the user-turn summary to the log
4. Wait for earlier request tasks to unwind; give up if superseded meanwhile
5. Stream; each fragment updates one assistant message for this request
6. Completed edit -> on_edit_complete(text); error -> "Error: ..." message;
   cancelled -> nothing
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

from redraft.client.transport import CancelToken, EditTransport, StreamOutcome, StreamResult, run_stream
from redraft.models.chat import ChatMessage
from redraft.models.edit_request import EditRequest, HistoryTurn
from redraft.services.validation import validate_edit_request
from redraft.utils.logging import get_logger

logger = get_logger(__name__)


def summarize_request(request: EditRequest) -> str:
    """Short user-facing description of a request for the conversation log."""
    if request.targets:
        labels = ", ".join(t.label for t in request.targets)
        return f"Editing {len(request.targets)} target(s): {labels}"
    return request.instruction or ""


@dataclass
class _ActiveRequest:
    """State owned by exactly one in-flight request."""

    request_id: str
    token: CancelToken = field(default_factory=CancelToken)
    assistant_message_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    task: Optional[asyncio.Task] = None


class EditOrchestrator:
    """Owns the conversation log and the single in-flight request.

    Example:
        >>> orchestrator = EditOrchestrator(transport, on_edit_complete=show_pending)
        >>> await orchestrator.send(EditRequest(full_content=doc, edit_level="whole",
        ...                                     instruction="shorten this"))
    """

    def __init__(
        self,
        transport: EditTransport,
        on_edit_complete: Optional[Callable[[str], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            transport: Event source for requests
            on_edit_complete: Receives the full text of a completed edit-mode request
            on_change: Called after every change to the message log
        """
        self.transport = transport
        self.on_edit_complete = on_edit_complete
        self.on_change = on_change
        self.messages: List[ChatMessage] = []
        self._active: Optional[_ActiveRequest] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_streaming(self) -> bool:
        return self._active is not None

    async def send(self, request: EditRequest) -> StreamResult:
        """Issue a request, cancelling any in-flight predecessor.

        The new request becomes the active one before anything is awaited, so
        a later send() always supersedes it. Streaming starts only once every
        earlier request task has finished unwinding.

        Returns once this request has finished, failed, or been superseded.

        Raises:
            EditRequestError: If the request is invalid (no state changes)
        """
        validate_edit_request(request)

        if request.mode == "chat":
            history = [HistoryTurn(role=m.role, content=m.content) for m in self.messages]
            request = request.model_copy(update={"history": history})

        active = _ActiveRequest(request_id=uuid.uuid4().hex[:8])
        previous, self._active = self._active, active
        if previous is not None:
            self._cancel_request(previous)

        self._append(ChatMessage(role="user", content=summarize_request(request)))

        try:
            await self._drain()
        except asyncio.CancelledError:
            self._release(active)
            raise

        if self._active is not active:
            # Superseded while predecessors were shutting down
            logger.info("orchestrator_request_superseded", request_id=active.request_id)
            return StreamResult(StreamOutcome.CANCELLED)

        active.task = asyncio.create_task(
            self._run(request, active),
            name=f"edit-{active.request_id}",
        )
        self._tasks.add(active.task)
        active.task.add_done_callback(self._tasks.discard)

        logger.info(
            "orchestrator_request_issued",
            request_id=active.request_id,
            mode=request.mode,
            edit_level=request.edit_level,
            target_count=len(request.targets or []),
        )

        try:
            return await active.task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if active.token.is_cancelled and current is not None and not current.cancelling():
                # Superseded before the request task got to run
                return StreamResult(StreamOutcome.CANCELLED)
            # The caller of send() was cancelled; take the request down with it
            active.task.cancel()
            self._release(active)
            raise

    async def cancel(self) -> None:
        """Cancel the in-flight request, if any. No message is recorded."""
        active = self._active
        if active is None:
            return

        self._active = None
        self._cancel_request(active)
        await self._drain()

    def clear_messages(self) -> None:
        """Discard the conversation log. The document and versions are untouched."""
        self.messages = []
        self._notify()

    def _cancel_request(self, active: _ActiveRequest) -> None:
        active.token.cancel()
        logger.info("orchestrator_request_cancelled", request_id=active.request_id)
        if active.task is not None and not active.task.done():
            active.task.cancel()

    def _release(self, active: _ActiveRequest) -> None:
        active.token.cancel()
        if self._active is active:
            self._active = None

    async def _drain(self) -> None:
        """Wait until every started request task has finished."""
        pending = {task for task in self._tasks if not task.done()}
        if pending:
            await asyncio.wait(pending)

    async def _run(self, request: EditRequest, active: _ActiveRequest) -> StreamResult:
        def on_chunk(text: str) -> None:
            if active.token.is_cancelled or self._active is not active:
                return
            self._upsert_assistant(active.assistant_message_id, text)

        try:
            result = await run_stream(self.transport, request, on_chunk, active.token)
        except asyncio.CancelledError:
            if active.token.is_cancelled:
                return StreamResult(StreamOutcome.CANCELLED)
            raise
        except Exception as e:
            logger.error(
                "orchestrator_request_failed",
                request_id=active.request_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = StreamResult(StreamOutcome.ERROR, error=str(e) or type(e).__name__)

        if active.token.is_cancelled or self._active is not active:
            return StreamResult(StreamOutcome.CANCELLED, result.text)

        self._active = None

        if result.outcome is StreamOutcome.COMPLETED:
            logger.info(
                "orchestrator_request_completed",
                request_id=active.request_id,
                length=len(result.text),
            )
            if request.mode == "edit" and self.on_edit_complete is not None:
                self.on_edit_complete(result.text)
        elif result.outcome is StreamOutcome.ERROR:
            self._append(ChatMessage(role="assistant", content=f"Error: {result.error}"))

        return result

    def _upsert_assistant(self, message_id: str, content: str) -> None:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                self.messages[i] = message.model_copy(update={"content": content})
                self._notify()
                return
        self._append(ChatMessage(id=message_id, role="assistant", content=content))

    def _append(self, message: ChatMessage) -> None:
        self.messages.append(message)
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()
