"""Remote key-value service client module."""

from .client import CloudSyncClient, CloudSyncError

__all__ = ["CloudSyncClient", "CloudSyncError"]
