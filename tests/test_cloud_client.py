"""
Unit tests for the remote key-value service client.
"""

import pytest
from unittest.mock import MagicMock

import requests

from refuelsync.cloud.client import CloudSyncClient, CloudSyncError


def _response(status_code: int = 200, json_body=None) -> MagicMock:
    """Build a fake requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.content = b"{}" if json_body is not None else b""
    response.json.return_value = json_body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error", response=response
        )
    return response


@pytest.fixture
def client():
    """Create a client whose session is replaced by a mock."""
    client = CloudSyncClient(base_url="https://kv.example.com/", access_token="secret-token")
    client._session = MagicMock()
    yield client
    client.close()


class TestCloudSyncClient:
    """Tests for CloudSyncClient."""

    def test_repr_hides_token(self):
        client = CloudSyncClient(base_url="https://kv.example.com", access_token="secret-token")
        try:
            assert "secret-token" not in repr(client)
            assert client._session.headers["Authorization"] == "Bearer secret-token"
        finally:
            client.close()

    def test_kv_url_strips_trailing_slash(self, client):
        assert client.kv_url == "https://kv.example.com/v1/kv"

    def test_push_sends_values(self, client):
        client._session.request.return_value = _response(204)

        client.push({"refuel_entries_json": "[]", "old": None})

        method, url = client._session.request.call_args.args
        assert method == "PUT"
        assert url == "https://kv.example.com/v1/kv"
        assert client._session.request.call_args.kwargs["json"] == {
            "values": {"refuel_entries_json": "[]", "old": None}
        }

    def test_fetch_returns_string_values(self, client):
        client._session.request.return_value = _response(
            200, {"values": {"a": "1", "b": 2, "c": None}}
        )

        assert client.fetch() == {"a": "1"}

    def test_fetch_without_values_raises(self, client):
        client._session.request.return_value = _response(200, {"unexpected": True})

        with pytest.raises(CloudSyncError, match="values"):
            client.fetch()

    def test_http_error_carries_status(self, client):
        client._session.request.return_value = _response(401, {"error": "unauthorized"})

        with pytest.raises(CloudSyncError) as exc_info:
            client.push({"a": "1"})

        assert exc_info.value.status_code == 401

    def test_connection_error_wrapped(self, client):
        client._session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(CloudSyncError, match="request failed") as exc_info:
            client.fetch()

        assert exc_info.value.status_code is None
