"""HTTP loaders built on httpx."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from tiny_query.keys import param_fields
from tiny_query.results import fail, page, succeed
from tiny_query.types import LoadFailure, LoadSuccess, PageSuccess

HttpResult = LoadSuccess[Any] | LoadFailure["HttpError"]


@dataclass(frozen=True, slots=True)
class HttpError:
    """Failure of an HTTP load; status_code is None for transport errors."""

    status_code: int | None
    message: str


def _query_params(param: Any) -> dict[str, Any] | None:
    if param is None:
        return None
    items = param_fields(param)
    if items is None:
        raise TypeError(f"Cannot use {type(param).__name__} as query parameters")
    return {name: value for name, value in items if value is not None}


class HttpLoader:
    """Turns JSON GET endpoints into query load functions.

    Usage:
        api = HttpLoader("https://api.example.com", headers={"Authorization": "..."})
        todos = client.create_query(["todos"], api.query("/todos"))
        feed = client.create_sequential_query(["feed"], api.pages("/feed"))
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json", **(headers or {})},
            timeout=timeout,
        )

    async def get(self, path: str, params: dict[str, Any] | None = None) -> HttpResult:
        """GET a JSON document; non-2xx responses and transport errors fail."""
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            return fail(HttpError(None, str(exc) or type(exc).__name__))

        if not response.is_success:
            try:
                message = response.json().get("error", "Request failed")
            except (ValueError, AttributeError):
                message = f"HTTP {response.status_code}"
            return fail(HttpError(response.status_code, message))

        try:
            return succeed(response.json())
        except ValueError:
            return fail(HttpError(response.status_code, "Invalid JSON response"))

    def query(self, path: str) -> Callable[..., Awaitable[HttpResult]]:
        """Load function for ``create_query``; the parameter becomes query params."""

        async def load(param: Any = None) -> HttpResult:
            return await self.get(path, _query_params(param))

        return load

    def pages(
        self,
        path: str,
        *,
        items_field: str = "items",
        cursor_field: str = "next",
        cursor_param: str = "cursor",
    ) -> Callable[..., Awaitable[PageSuccess[Any, Any] | LoadFailure[HttpError]]]:
        """Load function for ``create_sequential_query``.

        Each response is expected to hold the page under ``items_field``
        and the next cursor under ``cursor_field`` (null on the last page).
        """

        async def load(
            param: Any = None, *, cursor: Any = None
        ) -> PageSuccess[Any, Any] | LoadFailure[HttpError]:
            params = _query_params(param) or {}
            if cursor is not None:
                params[cursor_param] = cursor
            result = await self.get(path, params or None)
            if isinstance(result, LoadFailure):
                return result
            body = result.data
            if not isinstance(body, dict):
                return fail(HttpError(None, "Expected a JSON object page"))
            return page(body.get(items_field), body.get(cursor_field))

        return load

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
