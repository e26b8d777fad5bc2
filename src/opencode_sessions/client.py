"""Minimal async client for the OpenCode server API.

OpenCode 1.2.0+ keeps sessions in SQLite; the supported way to read or
change them is the HTTP API served by ``opencode serve``. Only the routes
the session store needs are wrapped here.
"""

from typing import Any, Protocol

import httpx

from .backend import BackendError


class SessionClient(Protocol):
    """What ServerBackend needs from a client. Methods return decoded JSON."""

    async def list_projects(self) -> list: ...

    async def list_sessions(self) -> list: ...

    async def get_session(self, session_id: str) -> dict | None: ...

    async def session_messages(self, session_id: str) -> list: ...

    async def session_todos(self, session_id: str) -> list: ...

    async def delete_session(self, session_id: str) -> bool: ...

    async def prompt(self, session_id: str, body: dict) -> dict | None: ...

    async def aclose(self) -> None: ...


class OpencodeClient:
    """httpx-based SessionClient.

    A 404 response is returned as None ("not found"); any other error
    status, or a transport failure, raises BackendError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        directory: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.directory = directory
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def list_projects(self) -> list:
        return await self._request("GET", "/project") or []

    async def list_sessions(self) -> list:
        return await self._request("GET", "/session") or []

    async def get_session(self, session_id: str) -> dict | None:
        return await self._request("GET", f"/session/{session_id}")

    async def session_messages(self, session_id: str) -> list:
        return await self._request("GET", f"/session/{session_id}/message") or []

    async def session_todos(self, session_id: str) -> list:
        return await self._request("GET", f"/session/{session_id}/todo") or []

    async def delete_session(self, session_id: str) -> bool:
        return await self._request("DELETE", f"/session/{session_id}") is not None

    async def prompt(self, session_id: str, body: dict) -> dict | None:
        return await self._request("POST", f"/session/{session_id}/message", json=body)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        params = {"directory": self.directory} if self.directory else None
        try:
            response = await self._http.request(method, path, params=params, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise BackendError(f"{method} {path} returned {response.status_code}: {response.text[:200]}")
        if not response.content:
            return True

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"{method} {path} returned invalid JSON") from e
