"""
REST HTTP client for the workspace backend.

401/403 always raise SessionExpiredError. 304 and 404 are returned to the
caller, which decides whether a missing document means "absent" or "session
gone". Everything else >= 400, and any network failure, raises TransportError.
"""

import logging
from typing import Any, NamedTuple, Optional

import httpx

from workspace_sync.errors import SessionExpiredError, TransportError

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = frozenset({401, 403})
USER_AGENT = "workspace-sync/0.1.0"


class FetchResult(NamedTuple):
    status_code: int
    data: Any = None
    last_modified: Optional[str] = None

    @property
    def not_modified(self) -> bool:
        return self.status_code == 304

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class HttpClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/api",
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _headers(self, authenticated: bool, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, str]] = None,
        body: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> FetchResult:
        try:
            resp = await self._client.request(
                method, path, params=params, json=body,
                headers=self._headers(authenticated, headers),
            )
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        status = resp.status_code
        if status in AUTH_FAILURE_STATUSES:
            raise SessionExpiredError(f"HTTP {status} on {method} {path}", status_code=status)
        if status in (304, 404):
            return FetchResult(status)
        if status >= 400:
            raise TransportError(f"HTTP {status}: {resp.text[:200]}", status_code=status)

        data = None
        if resp.content:
            try:
                data = resp.json()
            except ValueError as e:
                raise TransportError(f"{method} {path} returned invalid JSON", status_code=status) from e
        return FetchResult(status, data, resp.headers.get("Last-Modified"))

    async def get(
        self,
        path: str,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> FetchResult:
        return await self.request("GET", path, params=params, headers=headers, authenticated=authenticated)

    async def post(
        self,
        path: str,
        body: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> FetchResult:
        return await self.request("POST", path, params=params, body=body, authenticated=authenticated)

    async def delete(
        self,
        path: str,
        params: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> FetchResult:
        return await self.request("DELETE", path, params=params, authenticated=authenticated)

    async def close(self) -> None:
        await self._client.aclose()
