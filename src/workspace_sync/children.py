"""
Child documents scoped under a user's workspace.

Collection and document names are reduced to ``[A-Za-z0-9_.-]`` on every
operation, so two inputs that sanitize to the same string address the same
stored document.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import quote

from workspace_sync.config import SyncConfig
from workspace_sync.crypto import encode_user_key
from workspace_sync.errors import SessionExpiredError, TransportError, WorkspaceSyncError
from workspace_sync.transport.envelope import build_envelope
from workspace_sync.transport.http import HttpClient
from workspace_sync.workspaces import decode_document, workspace_path

logger = logging.getLogger(__name__)

_UNSAFE_SEGMENT_CHARS = re.compile(r"[^A-Za-z0-9_.-]")
PLACEHOLDER = "-"


def sanitize_segment(value: str) -> str:
    return _UNSAFE_SEGMENT_CHARS.sub(PLACEHOLDER, value)


class ChildDocumentsAPI:
    def __init__(self, http: HttpClient, config: SyncConfig):
        self._http = http
        self._config = config

    def path(self, user_id: str, child_collection: str, child_document_id: str) -> str:
        return (
            f"{workspace_path(user_id)}/child/"
            f"{quote(sanitize_segment(child_collection), safe='')}/"
            f"{quote(sanitize_segment(child_document_id), safe='')}"
        )

    def _params(self, collection: Optional[str], **extra: str) -> dict[str, str]:
        return {"collectionOverride": self._config.resolve_collection(collection), **extra}

    def _context(
        self, user_id: str, child_collection: str, child_document_id: str,
        collection: Optional[str], operation: str,
    ) -> dict[str, Any]:
        return {
            "user_id": user_id,
            "encrypted_user_key": encode_user_key(user_id),
            "collection": self._config.resolve_collection(collection),
            "child_collection": sanitize_segment(child_collection),
            "child_document_id": child_document_id,
            "operation": operation,
        }

    async def get(
        self, user_id: str, child_collection: str, child_document_id: str,
        collection: Optional[str] = None,
    ) -> Optional[Any]:
        """Read a child document. Returns None if it does not exist."""
        ctx = self._context(user_id, child_collection, child_document_id, collection, "get")
        try:
            result = await self._http.get(
                self.path(user_id, child_collection, child_document_id),
                params=self._params(collection),
                headers={"Cache-Control": "no-cache"},
            )
            if result.not_found:
                logger.info("Child document %s/%s does not exist", ctx["child_collection"], child_document_id,
                            extra={"sync": ctx})
                return None
            if result.not_modified:
                raise TransportError("Unexpected 304 on unconditional read", status_code=304, details=ctx)
            payload = decode_document(result.data, user_id, ctx)
        except SessionExpiredError:
            logger.warning("Child read for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to read child document for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("Child document %s/%s retrieved", ctx["child_collection"], child_document_id,
                    extra={"sync": ctx})
        return payload

    async def upsert(
        self, user_id: str, child_collection: str, child_document_id: str, data: dict[str, Any],
        collection: Optional[str] = None, merge: bool = True,
    ) -> None:
        """Create or update a child document. ``merge`` asks the store to merge fields."""
        ctx = self._context(user_id, child_collection, child_document_id, collection, "upsert")
        envelope = build_envelope(
            user_id,
            {**data, "subcollection": ctx["child_collection"], "childDocumentId": child_document_id},
            encrypt=self._config.encrypt,
        )
        try:
            result = await self._http.post(
                self.path(user_id, child_collection, child_document_id),
                envelope,
                params=self._params(collection, merge="true" if merge else "false"),
            )
            if result.not_found:
                raise TransportError("Child document path not found", status_code=404, details=ctx)
        except SessionExpiredError:
            logger.warning("Child write for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to write child document for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("Child document %s/%s created/updated", ctx["child_collection"], child_document_id,
                    extra={"sync": ctx})

    async def delete(
        self, user_id: str, child_collection: str, child_document_id: str,
        collection: Optional[str] = None,
    ) -> None:
        """Delete a child document. Raises TransportError if it does not exist."""
        ctx = self._context(user_id, child_collection, child_document_id, collection, "delete")
        try:
            result = await self._http.delete(
                self.path(user_id, child_collection, child_document_id),
                params=self._params(collection),
            )
            if result.not_found:
                raise TransportError("Child document not found", status_code=404, details=ctx)
        except SessionExpiredError:
            logger.warning("Child delete for %s not authorized; session must end", user_id, extra={"sync": ctx})
            raise
        except WorkspaceSyncError as e:
            logger.error("Failed to delete child document for %s: %s", user_id, e, extra={"sync": ctx})
            raise
        logger.info("Child document %s/%s deleted", ctx["child_collection"], child_document_id,
                    extra={"sync": ctx})
