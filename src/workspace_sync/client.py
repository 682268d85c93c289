"""
AsyncWorkspaceSync / WorkspaceSync — main SDK clients.
"""

import asyncio
from typing import Any, Callable, Optional

import httpx

from workspace_sync.children import ChildDocumentsAPI
from workspace_sync.config import SyncConfig
from workspace_sync.environment import EnvironmentSignal
from workspace_sync.errors import SessionExpiredError
from workspace_sync.listener import AdaptiveLiveListener, Clock
from workspace_sync.public import PublicAPI
from workspace_sync.transport.http import HttpClient
from workspace_sync.workspaces import WorkspacesAPI


class AsyncWorkspaceSync:
    """Async workspace sync client (primary)."""

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **overrides: Any,
    ):
        if config is None:
            config = SyncConfig(**overrides)
        elif overrides:
            config = config.model_copy(update=overrides)
        self.config = config

        self.http = HttpClient(
            base_url=config.base_url,
            token=config.access_token,
            timeout=config.timeout,
            transport=transport,
        )
        self.workspaces = WorkspacesAPI(self.http, config)
        self.children = ChildDocumentsAPI(self.http, config)
        self.public = PublicAPI(self.http, config)
        self._listeners: list[AdaptiveLiveListener] = []

    async def __aenter__(self) -> "AsyncWorkspaceSync":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def set_token(self, token: Optional[str]) -> None:
        self.http.set_token(token)

    def listen(
        self,
        user_id: str,
        on_data: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        on_session_expired: Optional[Callable[[SessionExpiredError], None]] = None,
        *,
        environment: Optional[EnvironmentSignal] = None,
        collection: Optional[str] = None,
        clock: Optional[Clock] = None,
        start: bool = True,
    ) -> AdaptiveLiveListener:
        """Create a live listener on the user's workspace, started unless ``start`` is False."""
        listener = AdaptiveLiveListener(
            self.workspaces, user_id, on_data, on_error, on_session_expired,
            environment=environment, collection=collection, clock=clock,
        )
        self._listeners = [existing for existing in self._listeners if existing.active]
        self._listeners.append(listener)
        if start:
            listener.start()
        return listener

    async def close(self) -> None:
        for listener in self._listeners:
            listener.stop()
        self._listeners = []
        await self.http.close()


class WorkspaceSync:
    """Sync wrapper around AsyncWorkspaceSync. Runs the event loop internally.

    Live listening needs a running loop and is only available on the async client.
    """

    def __init__(self, config: Optional[SyncConfig] = None, **kwargs: Any):
        self._async = AsyncWorkspaceSync(config, **kwargs)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def config(self) -> SyncConfig:
        return self._async.config

    def get_workspace(self, user_id: str, collection: Optional[str] = None, missing_ok: bool = False) -> Any:
        return self._run(self._async.workspaces.get(user_id, collection=collection, missing_ok=missing_ok))

    def ensure_workspace(self, user_id: str, default: dict[str, Any], collection: Optional[str] = None) -> Any:
        return self._run(self._async.workspaces.ensure(user_id, default, collection=collection))

    def upsert_workspace(self, user_id: str, data: dict[str, Any], collection: Optional[str] = None) -> None:
        self._run(self._async.workspaces.upsert(user_id, data, collection=collection))

    def delete_workspace(self, user_id: str, collection: Optional[str] = None) -> None:
        self._run(self._async.workspaces.delete(user_id, collection=collection))

    def get_child(self, user_id: str, child_collection: str, child_document_id: str, **kwargs: Any) -> Any:
        return self._run(self._async.children.get(user_id, child_collection, child_document_id, **kwargs))

    def upsert_child(
        self, user_id: str, child_collection: str, child_document_id: str, data: dict[str, Any], **kwargs: Any,
    ) -> None:
        self._run(self._async.children.upsert(user_id, child_collection, child_document_id, data, **kwargs))

    def delete_child(self, user_id: str, child_collection: str, child_document_id: str, **kwargs: Any) -> None:
        self._run(self._async.children.delete(user_id, child_collection, child_document_id, **kwargs))

    def get_shared_workspace(self, share_token: str, collection: Optional[str] = None) -> Any:
        return self._run(self._async.public.get_shared_workspace(share_token, collection=collection))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
