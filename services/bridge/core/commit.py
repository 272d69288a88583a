"""
Commit stage.

Applies a resolved ResponseRecord to the platform boundary, using exactly one
outbound convention per handler:

  - RESULT: return an InvocationResult-shaped dict
  - CHANNEL: write status, headers and body onto the platform response channel
"""

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..config import OutboundConvention
from ..models.result import InvocationResult
from .exceptions import BridgeError
from .response_adapter import Body, JSON_CONTENT_TYPE, ResponseRecord, is_json_media_type

logger = logging.getLogger("bridge.commit")

DEFAULT_JSON_BODY = {"message": "Request completed successfully"}
NO_BODY_STATUSES = (204, 304)

# Content types whose bytes are returned as text rather than base64.
_TEXTUAL_PREFIXES = ("text/", "application/json", "application/javascript", "application/xml")


class ResponseChannel(Protocol):
    """
    Platform response sink used by the CHANNEL convention.

    Channels may also offer ``remove_header(key)``; when present, headers left
    by a failed commit are removed before the error response is written.
    """

    status_code: int

    def set_header(self, key: str, value: str) -> Any: ...

    def send(self, body: Body) -> Any: ...


class AlreadyCommittedError(BridgeError):
    """Raised when a second commit is attempted for one invocation."""

    def __init__(self):
        super().__init__("Response already committed")


def materialize_body(record: ResponseRecord) -> Body:
    """Substitute the default success body for an empty JSON response."""
    if record.status_code in NO_BODY_STATUSES:
        return ""
    if is_json_media_type(record.get_header("Content-Type")) and record.body in (None, "", b""):
        logger.info("Empty JSON response, using fallback")
        return json.dumps(DEFAULT_JSON_BODY)
    return record.body


def encode_body(body: Body, content_type: Optional[str]) -> Tuple[str, bool]:
    """Return (body, is_base64) for the RESULT convention."""
    if body is None:
        return "", False
    if isinstance(body, str):
        return body, False
    if (content_type or "").lower().startswith(_TEXTUAL_PREFIXES):
        try:
            return body.decode("utf-8"), False
        except UnicodeDecodeError:
            pass
    return base64.b64encode(body).decode("ascii"), True


def error_record(error: BaseException) -> ResponseRecord:
    """Best-effort record for a failure at the handler boundary."""
    record = ResponseRecord(status_code=500)
    record.set_header("Content-Type", JSON_CONTENT_TYPE)
    record.body = json.dumps(
        {
            "error": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
    record.terminal = True
    return record


class Committer:
    """
    Commits one invocation's record. A committer is used once.
    """

    def __init__(self, convention: OutboundConvention, channel: Optional[ResponseChannel] = None):
        self.convention = OutboundConvention(convention)
        self.channel = channel
        self.committed = False
        self._written_headers: List[str] = []

    def commit(self, record: ResponseRecord) -> Optional[Dict[str, Any]]:
        if self.committed:
            raise AlreadyCommittedError()
        # Later writes to the live record are not observed.
        snapshot = record.snapshot()
        snapshot.body = materialize_body(snapshot)

        logger.info(
            f"Committing response with status {snapshot.status_code}",
            extra={
                "status": snapshot.status_code,
                "convention": self.convention.value,
                "body_start": _preview(snapshot.body),
            },
        )

        if self.convention is OutboundConvention.CHANNEL:
            result = self._write_channel(snapshot)
        else:
            result = self._build_result(snapshot)
        self.committed = True
        return result

    def commit_error(self, error: BaseException) -> Optional[Dict[str, Any]]:
        """
        Commit a best-effort 500 for an error caught at the boundary.

        Only reached when no commit has completed yet. On a channel, the error
        record's headers are written last.
        """
        record = error_record(error)
        if self.convention is OutboundConvention.CHANNEL:
            try:
                self._drop_stale_headers(record)
                self._write_channel(record)
            except Exception:
                logger.exception("Failed to write error response to platform channel")
            self.committed = True
            return None
        self.committed = True
        return self._build_result(record)

    def _write_channel(self, record: ResponseRecord) -> None:
        if self.channel is None:
            raise BridgeError("CHANNEL convention requires a platform response object")
        self.channel.status_code = record.status_code
        for key, value in record.headers.items():
            self.channel.set_header(key, value)
            self._written_headers.append(key)
        self.channel.send(record.body if record.body is not None else "")

    def _drop_stale_headers(self, record: ResponseRecord) -> None:
        remove_header = getattr(self.channel, "remove_header", None)
        if remove_header is None:
            return
        owned = {key.lower() for key in record.headers}
        for key in self._written_headers:
            if key.lower() not in owned:
                remove_header(key)
        self._written_headers = []

    @staticmethod
    def _build_result(record: ResponseRecord) -> Dict[str, Any]:
        body, is_base64 = encode_body(record.body, record.get_header("Content-Type"))
        return InvocationResult(
            statusCode=record.status_code,
            headers=dict(record.headers),
            body=body,
            isBase64Encoded=is_base64,
        ).model_dump()


def _preview(body: Body) -> Any:
    if isinstance(body, str):
        return body[:100]
    if isinstance(body, bytes):
        return f"<{len(body)} bytes>"
    return body
