"""Async access to the version store, over HTTP or in-process."""

import asyncio
from typing import List, Optional, Protocol

import httpx

from redraft.models.version import VersionMeta
from redraft.services.exceptions import VersionCorruptedError, VersionNotFoundError
from redraft.services.version_store import VersionStore


class VersionBackend(Protocol):
    """Operations the edit session needs from the version store."""

    async def list(self) -> List[VersionMeta]: ...

    async def get_content(self, version_id: str) -> str: ...

    async def save(self, content: str) -> Optional[VersionMeta]: ...

    async def clear(self) -> None: ...


class LocalVersions:
    """Runs VersionStore calls in a worker thread."""

    def __init__(self, store: VersionStore):
        self.store = store

    async def list(self) -> List[VersionMeta]:
        return await asyncio.to_thread(self.store.list)

    async def get_content(self, version_id: str) -> str:
        """
        Raises:
            VersionNotFoundError: Unknown id
            VersionCorruptedError: Known id whose snapshot file is missing
        """
        content = await asyncio.to_thread(self.store.get_content, version_id)
        if content is None:
            raise VersionNotFoundError(version_id)
        return content

    async def save(self, content: str) -> Optional[VersionMeta]:
        return await asyncio.to_thread(self.store.save, content)

    async def clear(self) -> None:
        await asyncio.to_thread(self.store.clear)


class VersionsClient:
    """HTTP client for the /api/versions routes."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            base_url: Server root, e.g. "http://127.0.0.1:3001"
            client: Optional shared httpx client
        """
        self.base_url = base_url.rstrip("/")
        self._client = client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, f"{self.base_url}{path}", **kwargs)
        async with httpx.AsyncClient(timeout=httpx.Timeout(30.0)) as client:
            return await client.request(method, f"{self.base_url}{path}", **kwargs)

    async def list(self) -> List[VersionMeta]:
        response = await self._request("GET", "/api/versions")
        response.raise_for_status()
        return [VersionMeta.model_validate(item) for item in response.json()]

    async def get_content(self, version_id: str) -> str:
        """
        Raises:
            VersionNotFoundError: Server answered 404
            VersionCorruptedError: Server reported missing snapshot content
            httpx.HTTPStatusError: Any other failure status
        """
        response = await self._request("GET", f"/api/versions/{version_id}")
        if response.status_code == 404:
            raise VersionNotFoundError(version_id)
        if response.status_code >= 500:
            body = response.json() if response.headers.get("content-type", "").startswith("application/json") else {}
            if body.get("code") == "version_corrupted":
                raise VersionCorruptedError(version_id, "<server>", body.get("error", "Snapshot content is missing"))
        response.raise_for_status()
        return response.json()["content"]

    async def save(self, content: str) -> Optional[VersionMeta]:
        """Returns None when the server reports a duplicate of the latest version."""
        response = await self._request("POST", "/api/versions", json={"content": content})
        response.raise_for_status()
        body = response.json()
        if body.get("duplicate"):
            return None
        return VersionMeta.model_validate(body)

    async def clear(self) -> None:
        response = await self._request("DELETE", "/api/versions")
        response.raise_for_status()
