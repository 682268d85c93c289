"""
Workspace document REST API.

Reads decrypt transparently, including documents still in the legacy
encoding. Writes always produce the current envelope format.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

from workspace_sync.config import SyncConfig
from workspace_sync.crypto import encode_user_key
from workspace_sync.errors import (
    EnvelopeValidationError,
    SessionExpiredError,
    TransportError,
    WorkspaceSyncError,
)
from workspace_sync.transport.envelope import build_envelope, open_envelope, parse_envelope
from workspace_sync.transport.http import FetchResult, HttpClient

logger = logging.getLogger(__name__)


def workspace_path(user_id: str) -> str:
    return f"/firestore/workspaces/{quote(user_id, safe='')}"


def decode_document(raw: Any, user_id: str, context: Optional[dict[str, Any]] = None) -> Optional[Any]:
    """Parse and open a stored document.

    A malformed envelope counts as "no data" and yields None. Decryption
    failures propagate.
    """
    try:
        envelope = parse_envelope(raw)
    except EnvelopeValidationError as e:
        logger.warning("Ignoring malformed envelope: %s", e, extra={"sync": context or {}})
        return None
    return open_envelope(envelope, user_id)


class WorkspacesAPI:
    def __init__(self, http: HttpClient, config: SyncConfig):
        self._http = http
        self._config = config

    @property
    def config(self) -> SyncConfig:
        return self._config

    def _params(self, collection: Optional[str]) -> dict[str, str]:
        return {"collectionOverride": self._config.resolve_collection(collection)}

    def _context(self, user_id: str, collection: Optional[str], operation: str) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "encrypted_user_key": encode_user_key(user_id),
            "collection": self._config.resolve_collection(collection),
            "operation": operation,
        }

    async def fetch(
        self,
        user_id: str,
        *,
        collection: Optional[str] = None,
        if_modified_since: Optional[str] = None,
    ) -> FetchResult:
        """Conditional GET of the raw stored document (no decoding)."""
        headers = {"If-Modified-Since": if_modified_since} if if_modified_since else {"Cache-Control": "no-cache"}
        return await self._http.get(workspace_path(user_id), params=self._params(collection), headers=headers)

    def decode(self, raw: Any, user_id: str, collection: Optional[str] = None) -> Optional[Any]:
        return decode_document(raw, user_id, self._context(user_id, collection, "decode"))

    async def get(self, user_id: str, collection: Optional[str] = None, missing_ok: bool = False) -> Optional[Any]:
        """Read and decrypt the user's workspace.

        A missing workspace ends the session unless ``missing_ok`` is set, in
        which case None is returned.
        """
        ctx = self._context(user_id, collection, "get")
        try:
            result = await self.fetch(user_id, collection=collection)
            if result.not_found:
                if missing_ok:
                    logger.info("No workspace stored for user %s", user_id, extra={"sync": ctx})
                    return None
                raise SessionExpiredError("Workspace not found", status_code=404, details=ctx)
            if result.not_modified:
                raise TransportError("Unexpected 304 on unconditional read", status_code=304, details=ctx)
            payload = decode_document(result.data, user_id, ctx)
        except SessionExpiredError:
            logger.warning("Workspace read for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to read workspace for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("Workspace for %s retrieved", user_id, extra={"sync": ctx})
        return payload

    async def ensure(self, user_id: str, default: dict[str, Any], collection: Optional[str] = None) -> Any:
        """Return the stored workspace, creating it from ``default`` on first access.

        Only a 404 counts as first access. A stored document that cannot be
        parsed raises EnvelopeValidationError and is left untouched.
        """
        ctx = self._context(user_id, collection, "ensure")
        try:
            result = await self.fetch(user_id, collection=collection)
            if not result.not_found:
                if result.not_modified:
                    raise TransportError("Unexpected 304 on unconditional read", status_code=304, details=ctx)
                return open_envelope(parse_envelope(result.data), user_id)
        except SessionExpiredError:
            logger.warning("Workspace read for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to read workspace for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("No workspace stored for user %s; creating default", user_id, extra={"sync": ctx})
        await self.upsert(user_id, default, collection=collection)
        return await self.get(user_id, collection=collection)

    async def upsert(self, user_id: str, data: dict[str, Any], collection: Optional[str] = None) -> None:
        """Create or replace the user's workspace, re-stamping its metadata."""
        ctx = self._context(user_id, collection, "upsert")
        envelope = build_envelope(user_id, data, encrypt=self._config.encrypt)
        try:
            result = await self._http.post(workspace_path(user_id), envelope, params=self._params(collection))
            if result.not_found:
                raise SessionExpiredError("Workspace path not found", status_code=404, details=ctx)
        except SessionExpiredError:
            logger.warning("Workspace write for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to write workspace for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("Workspace for %s created/updated", user_id, extra={"sync": ctx})

    async def delete(self, user_id: str, collection: Optional[str] = None) -> None:
        ctx = self._context(user_id, collection, "delete")
        try:
            result = await self._http.delete(workspace_path(user_id), params=self._params(collection))
            if result.not_found:
                raise SessionExpiredError("Workspace not found", status_code=404, details=ctx)
        except SessionExpiredError:
            logger.warning("Workspace delete for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to delete workspace for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("Workspace for %s deleted", user_id, extra={"sync": ctx})
