"""
Workspace sync error types.

Every failure the engine surfaces carries a short machine code, a message and
optional details (user id, collection, operation) for diagnostics. Details
never contain decrypted payload contents or key material.
"""

from typing import Any, Optional


class WorkspaceSyncError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class DecryptionError(WorkspaceSyncError):
    """Authentication-tag failure, undersized ciphertext or undecodable legacy payload."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("decryption_error", message, details)


class TransportError(WorkspaceSyncError):
    """Network failure or a non-2xx status outside the authorization class. Recoverable."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__("transport_error", message, details)
        self.status_code = status_code


class SessionExpiredError(WorkspaceSyncError):
    """401/403/404 on an owned resource. The caller must end the local session."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__("session_expired", message, details)
        self.status_code = status_code


class EnvelopeValidationError(WorkspaceSyncError):
    """Stored document is neither a ciphertext envelope nor a plain one."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("invalid_envelope", message, details)
