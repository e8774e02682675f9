"""HTTP surface for edit streaming and the version store.

Routes:
    POST   /api/edit            stream an edit/chat exchange as SSE frames
    GET    /api/versions        list version metadata
    GET    /api/versions/{id}   fetch one version's content
    POST   /api/versions        snapshot content (dedup against latest)
    DELETE /api/versions        clear all versions
    GET    /api/health          liveness probe
"""

from pathlib import Path
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from redraft.models.config import Configuration
from redraft.models.edit_request import EditRequest
from redraft.models.stream_events import StreamEvent
from redraft.services.edit_stream import EditResponder, TextStreamer
from redraft.services.exceptions import EditRequestError, VersionCorruptedError
from redraft.services.llm_client import LLMClient
from redraft.services.validation import validate_edit_request
from redraft.services.version_store import VersionStore
from redraft.utils.logging import get_logger

logger = get_logger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable proxy buffering
}


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _read_json(request: Request) -> Optional[dict]:
    """Parse the request body as a JSON object, or None if it isn't one."""
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


async def _sse_frames(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield event.to_sse()


def create_app(
    config: Optional[Configuration] = None,
    streamer: Optional[TextStreamer] = None,
    store: Optional[VersionStore] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration (defaults apply when None)
        streamer: Model client; defaults to LLMClient(config.llm)
        store: Version store; defaults to one rooted at config.storage.versions_dir

    Returns:
        Configured FastAPI app
    """
    config = config or Configuration()
    streamer = streamer or LLMClient(config.llm)
    store = store or VersionStore(Path(config.storage.versions_dir))
    responder = EditResponder(streamer)

    app = FastAPI(title="Redraft", version="0.1.0")
    app.state.config = config
    app.state.responder = responder
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.server.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VersionCorruptedError)
    async def version_corrupted_handler(request: Request, exc: VersionCorruptedError) -> JSONResponse:
        return _error(500, exc.message, code="version_corrupted", id=exc.version_id)

    @app.post("/api/edit")
    async def edit(request: Request):
        body = await _read_json(request)
        if body is None:
            return _error(400, "Request body must be a JSON object")

        try:
            edit_request = EditRequest.model_validate(body)
            validate_edit_request(edit_request)
        except ValidationError as e:
            return _error(400, f"Invalid request: {e.errors()[0]['msg']}")
        except EditRequestError as e:
            logger.info("edit_request_rejected", error=str(e))
            return _error(400, str(e))

        events = responder.events(edit_request, is_cancelled=request.is_disconnected)
        return StreamingResponse(
            _sse_frames(events),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/api/versions")
    def list_versions():
        return [meta.model_dump() for meta in store.list()]

    @app.get("/api/versions/{version_id}")
    def get_version(version_id: str):
        content = store.get_content(version_id)
        if content is None:
            return _error(404, "Version not found")
        return {"content": content}

    @app.post("/api/versions")
    async def save_version(request: Request):
        body = await _read_json(request)
        content = body.get("content") if body else None
        if not content or not isinstance(content, str):
            return _error(400, "Missing content")

        meta = await run_in_threadpool(store.save, content)
        if meta is None:
            return JSONResponse(status_code=200, content={"duplicate": True})
        return JSONResponse(status_code=201, content=meta.model_dump())

    @app.delete("/api/versions")
    def clear_versions():
        store.clear()
        return {"ok": True}

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    return app
