"""Shared fakes: an in-memory workspace backend served through httpx.MockTransport, and a manual clock."""

import asyncio
import inspect
import json
from email.utils import formatdate
from typing import Any, Callable, Optional
from urllib.parse import unquote

import httpx
import pytest

from workspace_sync import AsyncWorkspaceSync, SyncConfig
from workspace_sync.crypto import encode_user_key

BASE_URL = "http://backend.test"


class FakeBackend:
    """Mimics the backend routes: workspaces, child documents and public profiles."""

    def __init__(self) -> None:
        self.docs: dict[tuple[str, str], dict[str, Any]] = {}
        self.modified: dict[tuple[str, str], str] = {}
        self.share_tokens: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.forced: list[int] = []
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()
        self._tick = 0

    def _stamp(self, key: tuple[str, str]) -> None:
        self._tick += 1
        self.modified[key] = formatdate(1_700_000_000 + self._tick, usegmt=True)

    def touch(self, collection: str, user_id: str) -> None:
        """Change Last-Modified without changing the stored document."""
        self._stamp((collection, encode_user_key(user_id)))

    def stored(self, collection: str, user_id: str, child: str = "") -> Optional[dict[str, Any]]:
        return self.docs.get((collection, encode_user_key(user_id) + child))

    def store_raw(self, collection: str, user_id: str, doc: dict[str, Any]) -> None:
        key = (collection, encode_user_key(user_id))
        self.docs[key] = doc
        self._stamp(key)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.forced:
            return httpx.Response(self.forced.pop(0), json={"error": "forced"})

        raw_path = request.url.raw_path.decode("ascii").split("?")[0]
        parts = [unquote(p) for p in raw_path.split("/")]
        # /api/public/profile/{token}
        if parts[2] == "public":
            return self._public(parts[4])

        # /api/firestore/workspaces/{userKey}[/child/{col}/{doc}]
        user_id = parts[4]
        child = ""
        if len(parts) > 5 and parts[5] == "child":
            child = f"/{parts[6]}/{parts[7]}"
        collection = request.url.params.get("collectionOverride", "workspace-test")
        key = (collection, encode_user_key(user_id) + child)

        if request.method == "GET":
            if key not in self.docs:
                return httpx.Response(404, json={"error": "Workspace not found"})
            last_modified = self.modified[key]
            if request.headers.get("if-modified-since") == last_modified:
                return httpx.Response(304)
            return httpx.Response(200, json=self.docs[key], headers={"Last-Modified": last_modified})

        if request.method == "POST":
            body = json.loads(request.content)
            merge = request.url.params.get("merge", "true") == "true"
            if merge and key in self.docs:
                self.docs[key] = {**self.docs[key], **body}
            else:
                self.docs[key] = body
            self._stamp(key)
            return httpx.Response(200, json={"success": True})

        if request.method == "DELETE":
            if key not in self.docs:
                return httpx.Response(404, json={"error": "not found"})
            del self.docs[key]
            return httpx.Response(200, json={"success": True})

        return httpx.Response(405)

    def _public(self, token: str) -> httpx.Response:
        user_id = self.share_tokens.get(token)
        if user_id is None:
            return httpx.Response(404, json={"error": "Profile not found or invalid token."})
        for (_collection, doc_key), doc in self.docs.items():
            if doc_key == encode_user_key(user_id):
                return httpx.Response(200, json={"profile": {**doc, "userKey": user_id}})
        return httpx.Response(404, json={"error": "Profile not found or invalid token."})


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], Any]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Records timers instead of running them; tests fire them explicitly."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    async def fire(self) -> None:
        timer = self.pending[-1]
        timer.cancelled = True
        result = timer.callback()
        if inspect.isawaitable(result):
            await result


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_client(backend: FakeBackend, **overrides: Any) -> AsyncWorkspaceSync:
    config = SyncConfig(base_url=BASE_URL, access_token="token-1", collection="workspace-test", **overrides)
    return AsyncWorkspaceSync(config, transport=httpx.MockTransport(backend.handler))


@pytest.fixture
def client_factory(backend: FakeBackend) -> Callable[..., AsyncWorkspaceSync]:
    return lambda **overrides: make_client(backend, **overrides)
