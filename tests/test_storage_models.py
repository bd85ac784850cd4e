"""
Unit tests for stored record models.
"""

from refuelsync.storage.models import ENTRIES_JSON_KEY, UPDATED_AT_KEY, SyncRecord


class TestSyncRecord:
    """Tests for SyncRecord."""

    def test_empty_record(self):
        """Test the record used when nothing is stored."""
        record = SyncRecord.empty()
        assert record.entries_json == ""
        assert record.updated_at == ""
        assert record.is_empty is True

    def test_to_dict_uses_wire_names(self, sample_record: SyncRecord):
        """Test dict form uses the channel's camelCase names."""
        assert sample_record.to_dict() == {
            "entriesJson": sample_record.entries_json,
            "updatedAt": sample_record.updated_at,
        }

    def test_storage_keys(self):
        """Test the key names shared with existing installations."""
        assert ENTRIES_JSON_KEY == "refuel_entries_json"
        assert UPDATED_AT_KEY == "refuel_entries_updated_at"

    def test_partial_record_is_not_empty(self):
        """Test a record with only a timestamp still counts as saved."""
        assert SyncRecord(entries_json="", updated_at="t1").is_empty is False
