"""
Client-side payload encryption.

Keys are derived from the owner's identifier with PBKDF2-HMAC-SHA256 over a
fixed public salt, so any client holding the identifier can re-derive the
same key. Payloads are JSON-serialized and sealed with AES-256-GCM.

Ciphertext format (before encoding): [12-byte nonce][ciphertext + 16-byte tag],
encoded as URL-safe base64 without padding.

Documents written before encryption was introduced hold only the URL-safe
base64 of the JSON text. ``legacy_decode`` reads them; nothing writes them.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from functools import lru_cache
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from workspace_sync.errors import DecryptionError

logger = logging.getLogger(__name__)

ENCRYPTION_TYPE = "AES-GCM"
KDF_SALT = b"AnPortafolioIA_Secure_Salt_v1"
KDF_ITERATIONS = 100_000
KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def encode_user_key(user_id: str) -> str:
    """Reversible document key for ``user_id``. Obfuscation only, not a secret."""
    return b64url_encode(user_id.encode("utf-8"))


def decode_user_key(encoded: str) -> str:
    return b64url_decode(encoded).decode("utf-8")


@lru_cache(maxsize=64)
def derive_key(secret: str) -> bytes:
    """
    Derive the AES-256 key for ``secret``.

    Deterministic for a given secret. Results are cached because PBKDF2 is
    deliberately slow and every read and write of a user's documents needs it.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def encrypt(payload: Any, key: bytes) -> str:
    """
    Encrypt a JSON-serializable payload.

    A fresh random nonce is drawn on every call, so encrypting the same
    payload twice yields different strings.
    """
    nonce = os.urandom(NONCE_LENGTH)
    plaintext = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    sealed = AESGCM(key).encrypt(nonce, plaintext, None)
    return b64url_encode(nonce + sealed)


def decrypt(token: str, key: bytes) -> Any:
    """
    Decrypt a string produced by ``encrypt``.

    Raises:
        DecryptionError: if the token is malformed, too short, was sealed
            with another key, or was tampered with.
    """
    try:
        raw = b64url_decode(token)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise DecryptionError(f"Encrypted payload is not valid base64url: {e}")

    if len(raw) < NONCE_LENGTH + TAG_LENGTH:
        raise DecryptionError(f"Encrypted payload too short ({len(raw)} bytes)")

    nonce, sealed = raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]
    try:
        plaintext = AESGCM(key).decrypt(nonce, sealed, None)
    except InvalidTag:
        raise DecryptionError("Authentication failed: wrong key or corrupted payload")

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecryptionError(f"Decrypted payload is not JSON: {e}")


def encrypt_payload(payload: Any, user_id: str) -> str:
    return encrypt(payload, derive_key(user_id))


def decrypt_payload(token: str, user_id: str) -> Any:
    return decrypt(token, derive_key(user_id))


def legacy_decode(token: str) -> Any:
    """Decode a pre-encryption document (base64url of the JSON text)."""
    try:
        decoded = b64url_decode(token).decode("utf-8")
        result = json.loads(decoded)
    except (binascii.Error, ValueError, UnicodeError) as e:
        raise DecryptionError(f"Legacy payload could not be decoded: {e}")
    logger.warning("Legacy weak encoding detected; the next save will upgrade it")
    return result
