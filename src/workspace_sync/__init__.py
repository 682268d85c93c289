"""
workspace-sync — encrypted workspace synchronization for Python.

Keeps a per-user workspace document and its child documents in sync with a
remote store behind an HTTP backend. Payloads are encrypted client-side with
a key derived from the owner's identifier.
"""

from workspace_sync.client import AsyncWorkspaceSync, WorkspaceSync
from workspace_sync.config import SyncConfig
from workspace_sync.environment import EnvironmentSignal, HeadlessEnvironment, ManualEnvironment
from workspace_sync.errors import (
    DecryptionError,
    EnvelopeValidationError,
    SessionExpiredError,
    TransportError,
    WorkspaceSyncError,
)
from workspace_sync.listener import AdaptiveLiveListener
from workspace_sync.sanitize import MISSING, sanitize

__version__ = "0.1.0"
__all__ = [
    "AsyncWorkspaceSync",
    "WorkspaceSync",
    "SyncConfig",
    "AdaptiveLiveListener",
    "EnvironmentSignal",
    "HeadlessEnvironment",
    "ManualEnvironment",
    "WorkspaceSyncError",
    "DecryptionError",
    "TransportError",
    "SessionExpiredError",
    "EnvelopeValidationError",
    "MISSING",
    "sanitize",
]
