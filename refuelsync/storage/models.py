"""
Synchronized record models.

The entries payload and its timestamp are opaque strings owned by the
application layer. This layer only moves them in and out of the store.
"""

from dataclasses import dataclass

ENTRIES_JSON_KEY = "refuel_entries_json"
UPDATED_AT_KEY = "refuel_entries_updated_at"


@dataclass(frozen=True)
class SyncRecord:
    """
    Represents the entries snapshot held in the key-value store.
    
    Attributes:
        entries_json: Serialized collection of entries (opaque)
        updated_at: Caller-defined timestamp of the snapshot (opaque)
    """
    entries_json: str = ""
    updated_at: str = ""
    
    @classmethod
    def empty(cls) -> "SyncRecord":
        """Record returned when nothing has been stored yet."""
        return cls(entries_json="", updated_at="")
    
    @property
    def is_empty(self) -> bool:
        return not self.entries_json and not self.updated_at
    
    def to_dict(self) -> dict:
        """Convert to the channel's wire representation."""
        return {
            "entriesJson": self.entries_json,
            "updatedAt": self.updated_at,
        }
    