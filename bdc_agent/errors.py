from __future__ import annotations

from typing import Optional


class ConfigError(RuntimeError):
    """A required setting (credential, API key, token) is missing."""


class SyncError(RuntimeError):
    """Base class for inventory sync failures. ``stage`` names the step that failed."""

    stage = "sync"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class LoginError(SyncError):
    stage = "login"


class InventoryTableNotFound(SyncError):
    stage = "discovery"


class SyncInProgressError(SyncError):
    stage = "lock"


class UpstreamError(RuntimeError):
    """
    The text-generation API failed. ``kind`` is one of:
    timeout, quota_exceeded, rate_limited, invalid_key, upstream_error.
    """

    def __init__(
        self,
        kind: str,
        message: str,
        status_code: int = 500,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.detail = detail
