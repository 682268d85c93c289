"""
Envelope construction and parsing.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from workspace_sync.crypto import ENCRYPTION_TYPE, decrypt_payload, encode_user_key, encrypt_payload, legacy_decode
from workspace_sync.errors import EnvelopeValidationError
from workspace_sync.models.envelope import (
    CLEAR_FIELDS,
    EncryptedEnvelope,
    Envelope,
    EnvelopeMetadata,
    LegacyEnvelope,
    PlainEnvelope,
)
from workspace_sync.sanitize import MISSING, sanitize

LAST_ACTION_FIELDS = ("type", "etapa", "action")
DEFAULT_LAST_ACTION = "workspace"


def _last_action(payload: dict[str, Any]) -> str:
    for field in LAST_ACTION_FIELDS:
        value = payload.get(field)
        if value:
            return str(value)
    return DEFAULT_LAST_ACTION


def build_envelope(
    user_id: str,
    payload: dict[str, Any],
    *,
    encrypt: bool,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Build the stored form of ``payload`` as a dict ready to POST.

    When ``encrypt`` is set the stamped object is sealed whole and only the
    ciphertext plus the clear indexing fields are returned.
    """
    cleaned = sanitize(payload)
    if cleaned is MISSING or cleaned is None:
        cleaned = {}
    if not isinstance(cleaned, dict):
        raise TypeError(f"Workspace payload must be a mapping, got {type(payload).__name__}")

    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    doc_key = encode_user_key(user_id)

    existing_meta = cleaned.get("metadata")
    metadata = {
        **(existing_meta if isinstance(existing_meta, dict) else {}),
        "userKey": user_id,
        "encryptedUserKey": doc_key,
        "updatedAt": timestamp,
    }
    stamped: dict[str, Any] = {
        **cleaned,
        "metadata": metadata,
        "lastAction": _last_action(cleaned),
        "updatedAt": timestamp,
        "encryptedUserKey": doc_key,
        "encryptionMode": "encrypted" if encrypt else "plain",
    }

    if not encrypt:
        stamped.pop("encryptionType", None)
        return stamped

    stamped["encryptionType"] = ENCRYPTION_TYPE
    envelope = EncryptedEnvelope(
        encrypted_payload=encrypt_payload(stamped, user_id),
        # Caller metadata is sealed with the payload; only ownership stays clear.
        metadata=EnvelopeMetadata(user_key=user_id, encrypted_user_key=doc_key, updated_at=timestamp),
        last_action=stamped["lastAction"],
        updated_at=timestamp,
        encrypted_user_key=doc_key,
    )
    return envelope.model_dump(by_alias=True, exclude_none=True)


def parse_envelope(raw: Any) -> Envelope:
    """Classify a stored document. Raises EnvelopeValidationError if it is neither shape."""
    if not isinstance(raw, dict):
        raise EnvelopeValidationError(f"Envelope must be an object, got {type(raw).__name__}")

    try:
        if raw.get("encryptedPayload") is not None:
            encryption_type = raw.get("encryptionType")
            if encryption_type is None:
                return LegacyEnvelope.model_validate(raw)
            if encryption_type == ENCRYPTION_TYPE:
                return EncryptedEnvelope.model_validate(raw)
            raise EnvelopeValidationError(f"Unsupported encryptionType {encryption_type!r}")
    except ValidationError as e:
        raise EnvelopeValidationError(f"Malformed envelope: {e.error_count()} validation error(s)")

    if raw.get("encryptionMode") == "encrypted":
        raise EnvelopeValidationError("Envelope marked encrypted but has no encryptedPayload")
    if not any(key not in CLEAR_FIELDS for key in raw):
        raise EnvelopeValidationError("Envelope has neither encryptedPayload nor plain fields")
    return PlainEnvelope(document=raw)


def open_envelope(envelope: Envelope, user_id: str) -> Any:
    """Return the payload held by ``envelope``, decrypting with ``user_id``'s key."""
    if isinstance(envelope, EncryptedEnvelope):
        return decrypt_payload(envelope.encrypted_payload, user_id)
    if isinstance(envelope, LegacyEnvelope):
        return legacy_decode(envelope.encrypted_payload)
    if isinstance(envelope, PlainEnvelope):
        return dict(envelope.document)
    raise TypeError(f"Unhandled envelope type: {type(envelope).__name__}")
