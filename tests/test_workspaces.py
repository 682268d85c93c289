"""Workspace CRUD against the in-memory backend."""

import base64
import json

import httpx
import pytest

from workspace_sync import AsyncWorkspaceSync, SyncConfig
from workspace_sync.errors import DecryptionError, EnvelopeValidationError, SessionExpiredError, TransportError

COLLECTION = "workspace-test"


class TestWorkspaceCRUD:
    @pytest.mark.asyncio
    async def test_upsert_then_get_round_trips(self, backend, client_factory):
        async with client_factory() as client:
            await client.workspaces.upsert("u1", {"count": 1, "type": "counter"})
            stored = backend.stored(COLLECTION, "u1")
            assert stored["encryptionMode"] == "encrypted"
            assert "count" not in stored

            data = await client.workspaces.get("u1")
            assert data["count"] == 1
            assert data["lastAction"] == "counter"
            assert data["metadata"]["userKey"] == "u1"

    @pytest.mark.asyncio
    async def test_plain_policy_stores_cleartext(self, backend, client_factory):
        async with client_factory(encrypt=False) as client:
            await client.workspaces.upsert("u1", {"count": 5})
            assert backend.stored(COLLECTION, "u1")["count"] == 5
            assert (await client.workspaces.get("u1"))["count"] == 5

    @pytest.mark.asyncio
    async def test_encrypted_reader_opens_plain_documents(self, backend, client_factory):
        async with client_factory(encrypt=False) as writer:
            await writer.workspaces.upsert("u1", {"count": 5})
        async with client_factory(encrypt=True) as reader:
            assert (await reader.workspaces.get("u1"))["count"] == 5

    @pytest.mark.asyncio
    async def test_missing_workspace_expires_session(self, client_factory):
        async with client_factory() as client:
            with pytest.raises(SessionExpiredError) as exc:
                await client.workspaces.get("nobody")
            assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_missing_ok_returns_none(self, client_factory):
        async with client_factory() as client:
            assert await client.workspaces.get("nobody", missing_ok=True) is None

    @pytest.mark.asyncio
    async def test_ensure_creates_default_once(self, backend, client_factory):
        async with client_factory() as client:
            created = await client.workspaces.ensure("u1", {"count": 0})
            assert created["count"] == 0
            await client.workspaces.upsert("u1", {"count": 9})
            again = await client.workspaces.ensure("u1", {"count": 0})
            assert again["count"] == 9
            posts = [r for r in backend.requests if r.method == "POST"]
            assert len(posts) == 2

    @pytest.mark.asyncio
    async def test_ensure_leaves_malformed_document_alone(self, backend, client_factory):
        malformed = {"encryptionMode": "encrypted", "lastAction": "workspace"}
        backend.store_raw(COLLECTION, "u1", malformed)
        async with client_factory() as client:
            with pytest.raises(EnvelopeValidationError):
                await client.workspaces.ensure("u1", {"count": 0})
        assert backend.stored(COLLECTION, "u1") == malformed
        assert [r for r in backend.requests if r.method == "POST"] == []

    @pytest.mark.asyncio
    async def test_upsert_restamps_updated_at(self, backend, client_factory):
        async with client_factory() as client:
            await client.workspaces.upsert("u1", {"count": 1})
            first = (await client.workspaces.get("u1"))["metadata"]["updatedAt"]
            await client.workspaces.upsert("u1", {"count": 1})
            second = (await client.workspaces.get("u1"))["metadata"]["updatedAt"]
            assert second >= first

    @pytest.mark.asyncio
    async def test_delete(self, backend, client_factory):
        async with client_factory() as client:
            await client.workspaces.upsert("u1", {"count": 1})
            await client.workspaces.delete("u1")
            assert backend.stored(COLLECTION, "u1") is None
            with pytest.raises(SessionExpiredError):
                await client.workspaces.delete("u1")

    @pytest.mark.asyncio
    async def test_collection_override(self, backend, client_factory):
        async with client_factory() as client:
            await client.workspaces.upsert("u1", {"count": 1}, collection="workspace-other")
            assert backend.stored("workspace-other", "u1") is not None
            assert backend.stored(COLLECTION, "u1") is None

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, backend, client_factory):
        async with client_factory() as client:
            await client.workspaces.upsert("u1", {"count": 1})
        assert backend.requests[0].headers["Authorization"] == "Bearer token-1"


class TestWorkspaceErrors:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_failures_expire_session(self, backend, client_factory, status):
        backend.forced.append(status)
        async with client_factory() as client:
            with pytest.raises(SessionExpiredError) as exc:
                await client.workspaces.upsert("u1", {"count": 1})
        assert exc.value.status_code == status

    @pytest.mark.asyncio
    async def test_server_error_is_transport_error(self, backend, client_factory):
        backend.forced.append(500)
        async with client_factory() as client:
            with pytest.raises(TransportError) as exc:
                await client.workspaces.get("u1")
        assert exc.value.status_code == 500

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = AsyncWorkspaceSync(SyncConfig(base_url="http://down.test"), transport=httpx.MockTransport(refuse))
        with pytest.raises(TransportError):
            await client.workspaces.get("u1")
        await client.close()

    @pytest.mark.asyncio
    async def test_other_users_document_fails_decryption(self, backend, client_factory):
        async with client_factory() as client:
            await client.workspaces.upsert("u1", {"count": 1})
            backend.store_raw(COLLECTION, "u2", backend.stored(COLLECTION, "u1"))
            with pytest.raises(DecryptionError):
                await client.workspaces.get("u2")

    @pytest.mark.asyncio
    async def test_legacy_document_is_read(self, backend, client_factory):
        encoded = base64.urlsafe_b64encode(json.dumps({"count": 4}).encode()).decode().rstrip("=")
        backend.store_raw(COLLECTION, "u1", {"encryptedPayload": encoded, "lastAction": "workspace"})
        async with client_factory() as client:
            assert await client.workspaces.get("u1") == {"count": 4}

    @pytest.mark.asyncio
    async def test_malformed_document_is_no_data(self, backend, client_factory):
        backend.store_raw(COLLECTION, "u1", {"encryptionMode": "encrypted", "lastAction": "workspace"})
        async with client_factory() as client:
            assert await client.workspaces.get("u1") is None
