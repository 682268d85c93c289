"""
Stored document envelope.

A stored document is exactly one of three shapes:

* ``EncryptedEnvelope`` — AES-GCM ciphertext plus clear indexing fields.
* ``LegacyEnvelope`` — base64url-encoded JSON written before encryption
  existed (``encryptionType`` absent).
* ``PlainEnvelope`` — the stamped payload stored as-is.

Ownership and audit fields stay in the clear in every shape so the backend
and the poller can work without decrypting.
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Top-level keys the envelope itself owns. Anything else is payload.
CLEAR_FIELDS = frozenset({
    "metadata",
    "lastAction",
    "updatedAt",
    "encryptedUserKey",
    "encryptionMode",
    "encryptionType",
})


class EnvelopeMetadata(BaseModel):
    """Ownership fields readable without the key. Other metadata is payload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_key: Optional[str] = Field(default=None, alias="userKey")
    encrypted_user_key: Optional[str] = Field(default=None, alias="encryptedUserKey")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")


class _ClearFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    metadata: Optional[EnvelopeMetadata] = None
    last_action: Optional[str] = Field(default=None, alias="lastAction")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    encrypted_user_key: Optional[str] = Field(default=None, alias="encryptedUserKey")


class EncryptedEnvelope(_ClearFields):
    encrypted_payload: str = Field(alias="encryptedPayload", min_length=1)
    encryption_mode: Literal["encrypted"] = Field(default="encrypted", alias="encryptionMode")
    encryption_type: Literal["AES-GCM"] = Field(default="AES-GCM", alias="encryptionType")


class LegacyEnvelope(_ClearFields):
    encrypted_payload: str = Field(alias="encryptedPayload", min_length=1)


class PlainEnvelope(BaseModel):
    document: dict[str, Any]

    @property
    def metadata(self) -> Optional[EnvelopeMetadata]:
        raw = self.document.get("metadata")
        return EnvelopeMetadata.model_validate(raw) if isinstance(raw, dict) else None


Envelope = Union[EncryptedEnvelope, LegacyEnvelope, PlainEnvelope]
