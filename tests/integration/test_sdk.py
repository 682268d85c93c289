"""
Integration tests for workspace-sync — run against a real backend.

Requires environment variables:
  WORKSPACE_SYNC_BASE_URL   — backend base URL
  WORKSPACE_SYNC_TOKEN      — valid access token
  WORKSPACE_SYNC_USER_ID    — user id owning the test workspace
  WORKSPACE_SYNC_COLLECTION — (optional) defaults to workspace-test

Run: WORKSPACE_SYNC_INTEGRATION=1 pytest tests/integration/ -v
"""

import asyncio
import os

import pytest

from workspace_sync import AsyncWorkspaceSync, SessionExpiredError, SyncConfig

SKIP = not os.environ.get("WORKSPACE_SYNC_INTEGRATION")
USER_ID = os.environ.get("WORKSPACE_SYNC_USER_ID", "")
COLLECTION = os.environ.get("WORKSPACE_SYNC_COLLECTION", "workspace-test")

pytestmark = pytest.mark.skipif(SKIP, reason="WORKSPACE_SYNC_INTEGRATION not set")


def make_client() -> AsyncWorkspaceSync:
    return AsyncWorkspaceSync(SyncConfig.from_env(collection=COLLECTION, min_interval=1.0))


class TestWorkspaceLifecycle:
    """Create, read, update, delete against the live store."""

    @pytest.mark.asyncio
    async def test_upsert_get_delete(self):
        async with make_client() as client:
            await client.workspaces.upsert(USER_ID, {"count": 1, "type": "integration"})
            data = await client.workspaces.get(USER_ID)
            assert data["count"] == 1
            assert data["metadata"]["userKey"] == USER_ID

            await client.workspaces.delete(USER_ID)
            assert await client.workspaces.get(USER_ID, missing_ok=True) is None

    @pytest.mark.asyncio
    async def test_missing_workspace_expires_session(self):
        async with make_client() as client:
            with pytest.raises(SessionExpiredError):
                await client.workspaces.get(USER_ID + "-does-not-exist")


class TestChildDocuments:
    @pytest.mark.asyncio
    async def test_child_round_trip(self):
        async with make_client() as client:
            await client.workspaces.upsert(USER_ID, {"count": 0})
            await client.children.upsert(USER_ID, "integration logs", "run-1", {"ok": True})
            doc = await client.children.get(USER_ID, "integration logs", "run-1")
            assert doc["ok"] is True
            await client.children.delete(USER_ID, "integration logs", "run-1")
            assert await client.children.get(USER_ID, "integration logs", "run-1") is None


class TestLiveListener:
    @pytest.mark.asyncio
    async def test_listener_sees_a_write(self):
        async with make_client() as client:
            await client.workspaces.upsert(USER_ID, {"count": 1})
            seen: list = []
            listener = client.listen(USER_ID, seen.append)
            await listener.settle()
            await client.workspaces.upsert(USER_ID, {"count": 2})

            for _ in range(30):
                if any(d.get("count") == 2 for d in seen):
                    break
                await asyncio.sleep(0.5)
            listener.stop()

            counts = [d["count"] for d in seen]
            assert counts[0] == 1
            assert counts.count(2) == 1
