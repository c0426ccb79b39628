from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import API_URL, DEFAULT_PRIORITY, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the board API."""

    def __init__(self, status_code: int, error: str, details: Optional[Any] = None) -> None:
        super().__init__(f"{status_code}: {error}")
        self.status_code = status_code
        self.error = error
        self.details = details


# Failures an optimistic update has to roll back from.
REQUEST_ERRORS = (ApiError, httpx.HTTPError)


def _board_path(alias: str, *parts: str) -> str:
    return "/".join(["/api/boards", quote(alias, safe=""), *(quote(p, safe="") for p in parts)])


class BoardApi:
    """Async client for the board HTTP API."""

    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> BoardApi:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        pwd: Optional[str] = None,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        query = dict(params or {})
        if pwd:
            query["pwd"] = pwd
        logger.debug("%s %s", method, path)
        return await self._client.request(method, path, params=query or None, json=json)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._send(method, path, **kwargs)
        if response.is_success:
            return response.json()
        raise self._error(response)

    @staticmethod
    def _error(response: httpx.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        details = body.get("details") if isinstance(body, dict) else None
        return ApiError(response.status_code, error or response.reason_phrase, details)

    # === Boards ===
    async def get_board(self, alias: str, new: bool = False, pwd: Optional[str] = None) -> dict[str, Any]:
        params = {"new": "true"} if new else None
        return await self._request("GET", _board_path(alias), params=params, pwd=pwd)

    async def update_board(
        self,
        alias: str,
        title: Optional[str] = None,
        column_order: Optional[list[str]] = None,
        pwd: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if title is not None:
            body["title"] = title
        if column_order is not None:
            body["columnOrder"] = column_order
        return await self._request("PUT", _board_path(alias), json=body, pwd=pwd)

    async def delete_board(self, alias: str, pwd: Optional[str] = None) -> dict[str, Any]:
        return await self._request("DELETE", _board_path(alias), pwd=pwd)

    async def duplicate_board(
        self,
        alias: str,
        source_alias: Optional[str] = None,
        password: Optional[str] = None,
        board_data: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        body = {"sourceAlias": source_alias, "password": password, "boardData": board_data}
        return await self._request("POST", _board_path(alias), json=body)

    # === Password gate ===
    async def is_editable(self, alias: str) -> bool:
        data = await self._request("GET", _board_path(alias, "editable"))
        return bool(data["requiresPassword"])

    async def set_password(self, alias: str, password: str) -> dict[str, Any]:
        return await self._request("POST", _board_path(alias, "password"), json={"password": password})

    async def validate_password(self, alias: str, pwd: str) -> bool:
        response = await self._send("GET", _board_path(alias, "validate"), pwd=pwd)
        if response.status_code == 403:
            return False
        if not response.is_success:
            raise self._error(response)
        return bool(response.json()["valid"])

    # === Tasks ===
    async def create_task(
        self,
        alias: str,
        column_id: str,
        title: str,
        description: str = "",
        priority: str = DEFAULT_PRIORITY,
        index: Optional[int] = None,
        pwd: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "title": title,
            "columnId": column_id,
            "description": description,
            "priority": priority,
        }
        if index is not None:
            body["index"] = index
        return await self._request("POST", _board_path(alias, "tasks"), json=body, pwd=pwd)

    async def move_task(
        self,
        alias: str,
        task_id: str,
        source_column_id: str,
        destination_column_id: str,
        destination_index: int,
        pwd: Optional[str] = None,
    ) -> dict[str, Any]:
        body = {
            "taskId": task_id,
            "sourceColumnId": source_column_id,
            "destinationColumnId": destination_column_id,
            "destinationIndex": destination_index,
        }
        return await self._request("PUT", _board_path(alias, "tasks"), json=body, pwd=pwd)

    async def update_task(self, alias: str, task_id: str, pwd: Optional[str] = None, **fields: Any) -> dict[str, Any]:
        return await self._request("PATCH", _board_path(alias, "tasks", task_id), json=fields, pwd=pwd)

    async def delete_task(self, alias: str, task_id: str, pwd: Optional[str] = None) -> dict[str, Any]:
        return await self._request("DELETE", _board_path(alias, "tasks", task_id), pwd=pwd)

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/api/health")
