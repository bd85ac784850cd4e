"""
JSON-lines RPC over text streams.

Each input line is one request:
    {"id": 1, "method": "loadEntries", "arguments": null}

Each output line is one response:
    {"id": 1, "result": {...}}
    {"id": 1, "error": {"code": "BAD_ARGS", "message": "...", "details": null}}
"""

import json
import logging
from typing import Any, Optional, TextIO

from .bridge.channel import MethodChannel
from .storage.kv_store import KeyValueStoreError

logger = logging.getLogger(__name__)

BAD_REQUEST = "BAD_REQUEST"
STORAGE_ERROR = "STORAGE_ERROR"


class RequestError(Exception):
    """Raised when an input line is not a valid request."""

    def __init__(self, message: str, request_id: Any = None):
        super().__init__(message)
        self.request_id = request_id


def decode_request(line: str) -> tuple[Any, str, Any]:
    """
    Parse a request line.

    Returns:
        (id, method, arguments)

    Raises:
        RequestError: If the line is not a JSON object with a string method
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise RequestError(f"Invalid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise RequestError("Request must be a JSON object")

    request_id = data.get("id")
    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise RequestError("Request has no method name", request_id=request_id)

    return request_id, method, data.get("arguments")


def encode_response(request_id: Any, envelope: dict) -> str:
    """Serialize a response envelope to a single line."""
    return json.dumps({"id": request_id, **envelope}, ensure_ascii=False)


def _error_envelope(code: str, message: str, details: Optional[Any] = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


def serve(channel: MethodChannel, instream: TextIO, outstream: TextIO) -> int:
    """
    Answer requests from instream until it is exhausted.

    Args:
        channel: Channel that receives the decoded method calls
        instream: Source of request lines
        outstream: Destination of response lines

    Returns:
        Number of requests answered
    """
    logger.info(f"Serving channel {channel.name}")
    handled = 0

    for line in instream:
        line = line.strip()
        if not line:
            continue

        try:
            request_id, method, arguments = decode_request(line)
        except RequestError as e:
            logger.warning(f"Rejected request: {e}")
            envelope = _error_envelope(BAD_REQUEST, str(e))
            request_id = e.request_id
        else:
            logger.debug(f"Request {request_id!r}: {method}")
            try:
                envelope = channel.invoke_method(method, arguments).to_dict()
            except KeyValueStoreError as e:
                logger.error(f"Request {request_id!r} failed in storage: {e}")
                envelope = _error_envelope(STORAGE_ERROR, str(e))

        outstream.write(encode_response(request_id, envelope) + "\n")
        outstream.flush()
        handled += 1

    logger.info(f"Input closed after {handled} requests")
    return handled
