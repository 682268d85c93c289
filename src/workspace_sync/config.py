"""
Sync configuration.

One ``SyncConfig`` is injected into every client, builder and listener, so
several configurations (for example an encrypting and a plain one) can live
side by side in one process.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_BASE_URL = "http://localhost:3001"
PRODUCTION_COLLECTION = "workspace-production"
DEVELOPMENT_COLLECTION = "workspace-development"


class SyncConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    access_token: Optional[str] = None
    # Encryption policy. Every reader and writer of a deployment must agree.
    encrypt: bool = True
    collection: str = PRODUCTION_COLLECTION
    timeout: float = 30.0

    # Polling, in seconds
    min_interval: float = Field(default=5.0, gt=0)
    max_interval: float = Field(default=60.0, gt=0)
    backoff_step: float = Field(default=2.0, ge=0)
    jitter_low: float = 0.9
    jitter_high: float = 1.1

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_bounds(self) -> "SyncConfig":
        if self.max_interval < self.min_interval:
            raise ValueError("max_interval must be >= min_interval")
        if not 0 < self.jitter_low <= self.jitter_high:
            raise ValueError("jitter bounds must satisfy 0 < jitter_low <= jitter_high")
        return self

    def resolve_collection(self, override: Optional[str] = None) -> str:
        if override and override.strip():
            return override.strip()
        return self.collection

    @classmethod
    def from_env(cls, **overrides: object) -> "SyncConfig":
        """Build a config from ``WORKSPACE_SYNC_*`` environment variables.

        ``WORKSPACE_SYNC_ENV=development`` selects plain storage and the
        development collection; anything else encrypts.
        """
        is_dev = os.environ.get("WORKSPACE_SYNC_ENV", "production").strip().lower() == "development"
        values: dict[str, object] = {
            "base_url": os.environ.get("WORKSPACE_SYNC_BASE_URL", DEFAULT_BASE_URL),
            "access_token": os.environ.get("WORKSPACE_SYNC_TOKEN") or None,
            "encrypt": not is_dev,
            "collection": DEVELOPMENT_COLLECTION if is_dev else PRODUCTION_COLLECTION,
        }
        collection = os.environ.get("WORKSPACE_SYNC_COLLECTION", "").strip()
        if collection:
            values["collection"] = collection
        values.update(overrides)
        return cls(**values)
