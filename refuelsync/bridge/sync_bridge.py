"""
Sync bridge.

Exposes saveEntries / loadEntries over a method channel and maps them
onto the synchronized key-value store. No merging, no timestamp
comparison, no retry: the store owns conflict resolution.
"""

import logging
from collections.abc import Mapping
from typing import Any

from ..storage.kv_store import KeyValueStore
from ..storage.models import ENTRIES_JSON_KEY, UPDATED_AT_KEY, SyncRecord
from .channel import MethodCall, MethodChannel, MethodResult
from .errors import InvalidArgumentsError, MethodNotImplementedError

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_NAME = "icloud_sync"

SAVE_ENTRIES = "saveEntries"
LOAD_ENTRIES = "loadEntries"

# Stored when saveEntries receives no usable entriesJson
DEFAULT_ENTRIES_JSON = "[]"


class SyncBridge:
    """
    Handles the entry synchronization methods.
    
    Usage:
        bridge = SyncBridge(store)
        channel = MethodChannel(DEFAULT_CHANNEL_NAME)
        bridge.attach(channel)
        
        channel.invoke_method("saveEntries", {"entriesJson": "[]", "updatedAt": "..."})
        record = bridge.load_entries()
    """
    
    def __init__(self, store: KeyValueStore):
        self.store = store
    
    def __repr__(self) -> str:
        return f"SyncBridge(store={self.store!r})"
    
    def attach(self, channel: MethodChannel) -> MethodChannel:
        """Install this bridge as the channel's method call handler."""
        channel.set_method_call_handler(self.handle)
        logger.info(f"Sync bridge attached to channel {channel.name}")
        return channel
    
    def save_entries(self, entries_json: str, updated_at: str) -> None:
        """
        Store both values and request synchronization.
        
        The synchronization outcome is not observed.
        """
        self.store.set_string(ENTRIES_JSON_KEY, entries_json)
        self.store.set_string(UPDATED_AT_KEY, updated_at)
        self.store.synchronize()
        
        logger.debug(f"Saved entries ({len(entries_json)} chars, updatedAt={updated_at!r})")
    
    def load_entries(self) -> SyncRecord:
        """Read both values, treating absent keys as empty strings."""
        return SyncRecord(
            entries_json=self.store.get_string(ENTRIES_JSON_KEY) or "",
            updated_at=self.store.get_string(UPDATED_AT_KEY) or "",
        )
    
    def handle(self, call: MethodCall) -> MethodResult:
        """
        Dispatch a channel method call.
        
        Raises:
            InvalidArgumentsError: saveEntries without a string-keyed mapping
            MethodNotImplementedError: Unknown method name
        """
        if call.method == SAVE_ENTRIES:
            entries_json, updated_at = _parse_save_arguments(call.arguments)
            self.save_entries(entries_json, updated_at)
            return MethodResult.success()
        
        if call.method == LOAD_ENTRIES:
            return MethodResult.success(self.load_entries().to_dict())
        
        raise MethodNotImplementedError(call.method)


def _parse_save_arguments(arguments: Any) -> tuple[str, str]:
    """
    Extract saveEntries values from the call payload.
    
    Missing or non-string values fall back to "[]" and "" respectively.
    """
    if not isinstance(arguments, Mapping) or not all(isinstance(k, str) for k in arguments):
        raise InvalidArgumentsError(details={"received": type(arguments).__name__})
    
    entries_json = arguments.get("entriesJson")
    if not isinstance(entries_json, str):
        entries_json = DEFAULT_ENTRIES_JSON
    
    updated_at = arguments.get("updatedAt")
    if not isinstance(updated_at, str):
        updated_at = ""
    
    return entries_json, updated_at
