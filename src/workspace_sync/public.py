"""
Public share read.

A share token resolves to another owner's published workspace. The backend
returns that owner's identifier alongside the envelope so the reader can
derive the decryption key; this is the one place an identifier is received
from the server, and it is limited to content the owner chose to publish.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

from workspace_sync.config import SyncConfig
from workspace_sync.errors import EnvelopeValidationError, SessionExpiredError, TransportError, WorkspaceSyncError
from workspace_sync.transport.envelope import open_envelope, parse_envelope
from workspace_sync.transport.http import HttpClient

logger = logging.getLogger(__name__)


class PublicAPI:
    def __init__(self, http: HttpClient, config: SyncConfig):
        self._http = http
        self._config = config

    async def get_shared_workspace(self, share_token: str, collection: Optional[str] = None) -> Optional[Any]:
        """Resolve ``share_token`` and return the published workspace, or None if unknown."""
        ctx = {"operation": "public_get", "collection": self._config.resolve_collection(collection)}
        try:
            result = await self._http.get(
                f"/public/profile/{quote(share_token, safe='')}",
                params={"collectionOverride": self._config.resolve_collection(collection)},
                authenticated=False,
            )
        except SessionExpiredError as e:
            # No session is involved on the public path.
            raise TransportError(f"Shared workspace refused: {e}", status_code=e.status_code, details=ctx) from e

        if result.not_found:
            return None
        data = result.data
        if not isinstance(data, dict) or not isinstance(data.get("profile"), dict):
            logger.warning("Public profile response has no profile section", extra={"sync": ctx})
            return None

        profile = dict(data["profile"])
        owner_id = profile.pop("userKey", None)
        if profile.get("encryptedPayload") and not owner_id:
            logger.warning("Shared workspace is encrypted but no owner key was provided", extra={"sync": ctx})
            return None

        try:
            envelope = parse_envelope(profile)
        except EnvelopeValidationError as e:
            logger.warning("Ignoring malformed shared envelope: %s", e, extra={"sync": ctx})
            return None
        try:
            return open_envelope(envelope, owner_id or "")
        except WorkspaceSyncError as e:
            logger.error("Failed to open shared workspace: %s", e, extra={"sync": ctx})
            raise
