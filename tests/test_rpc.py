"""
Unit tests for the JSON-lines RPC server.
"""

import io
import json

import pytest

from refuelsync.bridge import MethodChannel, SyncBridge
from refuelsync.rpc import RequestError, decode_request, serve
from refuelsync.storage import InMemoryKeyValueStore, KeyValueStoreError


class BrokenStore(InMemoryKeyValueStore):
    """Store whose writes fail the way a locked database does."""

    def set_string(self, key: str, value: str) -> None:
        raise KeyValueStoreError("database is locked")


def _serve(channel: MethodChannel, *lines: str) -> list[dict]:
    """Run the server over the given lines and parse every response."""
    outstream = io.StringIO()
    serve(channel, io.StringIO("\n".join(lines) + "\n"), outstream)
    return [json.loads(line) for line in outstream.getvalue().splitlines()]


class TestDecodeRequest:
    """Tests for request parsing."""

    def test_valid_request(self):
        assert decode_request('{"id": 7, "method": "loadEntries"}') == (7, "loadEntries", None)

    def test_invalid_json(self):
        with pytest.raises(RequestError, match="Invalid JSON"):
            decode_request("{not json")

    def test_not_an_object(self):
        with pytest.raises(RequestError, match="JSON object"):
            decode_request('["loadEntries"]')

    def test_missing_method_keeps_id(self):
        with pytest.raises(RequestError) as exc_info:
            decode_request('{"id": 3}')
        assert exc_info.value.request_id == 3


class TestServe:
    """Tests for the request loop."""

    def test_save_then_load(self, channel: MethodChannel):
        responses = _serve(
            channel,
            json.dumps({"id": 1, "method": "saveEntries",
                        "arguments": {"entriesJson": "[\"é\"]", "updatedAt": "t1"}}),
            json.dumps({"id": 2, "method": "loadEntries"}),
        )

        assert responses == [
            {"id": 1, "result": None},
            {"id": 2, "result": {"entriesJson": "[\"é\"]", "updatedAt": "t1"}},
        ]

    def test_bad_arguments(self, channel: MethodChannel):
        responses = _serve(channel, json.dumps({"id": 1, "method": "saveEntries", "arguments": "x"}))

        assert responses[0]["id"] == 1
        assert responses[0]["error"]["code"] == "BAD_ARGS"

    def test_unknown_method(self, channel: MethodChannel):
        responses = _serve(channel, json.dumps({"id": "a", "method": "nope"}))

        assert responses[0]["id"] == "a"
        assert responses[0]["error"]["code"] == "NOT_IMPLEMENTED"

    def test_malformed_line_does_not_stop_server(self, channel: MethodChannel):
        responses = _serve(
            channel,
            "garbage",
            "",
            json.dumps({"id": 2, "method": "loadEntries"}),
        )

        assert len(responses) == 2
        assert responses[0] == {
            "id": None,
            "error": {"code": "BAD_REQUEST", "message": responses[0]["error"]["message"], "details": None},
        }
        assert responses[1]["result"] == {"entriesJson": "", "updatedAt": ""}

    def test_returns_request_count(self, channel: MethodChannel):
        count = serve(channel, io.StringIO('{"method": "loadEntries"}\n\n'), io.StringIO())
        assert count == 1

    def test_storage_failure_answers_and_continues(self):
        channel = SyncBridge(BrokenStore()).attach(MethodChannel("icloud_sync"))

        responses = _serve(
            channel,
            json.dumps({"id": 1, "method": "saveEntries", "arguments": {"entriesJson": "[]"}}),
            json.dumps({"id": 2, "method": "loadEntries"}),
        )

        assert responses[0]["id"] == 1
        assert responses[0]["error"]["code"] == "STORAGE_ERROR"
        assert "database is locked" in responses[0]["error"]["message"]
        assert responses[1] == {"id": 2, "result": {"entriesJson": "", "updatedAt": ""}}
