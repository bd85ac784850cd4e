"""Method channel and sync bridge module."""

from .channel import MethodCall, MethodChannel, MethodResult, ResultStatus
from .errors import BridgeError, InvalidArgumentsError, MethodNotImplementedError
from .sync_bridge import DEFAULT_CHANNEL_NAME, SyncBridge

__all__ = [
    "BridgeError",
    "InvalidArgumentsError",
    "MethodCall",
    "MethodChannel",
    "MethodNotImplementedError",
    "MethodResult",
    "ResultStatus",
    "SyncBridge",
    "DEFAULT_CHANNEL_NAME",
]
