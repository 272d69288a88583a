"""
Response adapter.

A recording stand-in for the framework response object. The middleware chain
mutates it through the usual surface (status, set, json, send, end, redirect,
send_file); every mutation lands in a ResponseRecord that the commit stage
later applies to the platform boundary.
"""

import json
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger("bridge.response_adapter")

JSON_CONTENT_TYPE = "application/json"
DEFAULT_CONTENT_TYPE = "text/plain"

# File extension -> Content-Type for send_file.
CONTENT_TYPES: Dict[str, str] = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".gif": "image/gif",
}

Body = Union[bytes, str, None]


def content_type_for(file_path: Union[str, Path]) -> str:
    """Look up the Content-Type for a file by its extension."""
    return CONTENT_TYPES.get(Path(file_path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def is_json_media_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == JSON_CONTENT_TYPE


def _default_headers() -> Dict[str, str]:
    return {"Content-Type": JSON_CONTENT_TYPE}


@dataclass
class ResponseRecord:
    """
    Everything the chain wrote for one invocation.

    Header keys match case-insensitively; the most recent spelling is kept.
    """

    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=_default_headers)
    body: Body = None
    terminal: bool = False

    def set_header(self, key: str, value: Any) -> None:
        lowered = key.lower()
        for existing in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[existing]
        self.headers[key] = str(value)

    def get_header(self, key: str) -> Optional[str]:
        lowered = key.lower()
        for existing, value in self.headers.items():
            if existing.lower() == lowered:
                return value
        return None

    def snapshot(self) -> "ResponseRecord":
        return ResponseRecord(
            status_code=self.status_code,
            headers=dict(self.headers),
            body=self.body,
            terminal=self.terminal,
        )


class ResponseAdapter:
    """
    Response object passed to the middleware chain.

    States: open (initial) -> terminal (absorbing). Any terminal operation
    performs the transition once; later writes are still recorded.
    """

    def __init__(self, record: Optional[ResponseRecord] = None):
        self.record = record if record is not None else ResponseRecord()
        self._terminal_listeners: List[Callable[[], None]] = []

    # --- state ---------------------------------------------------------

    @property
    def terminal(self) -> bool:
        return self.record.terminal

    @property
    def status_code(self) -> int:
        return self.record.status_code

    @property
    def headers(self) -> Dict[str, str]:
        return self.record.headers

    @property
    def body(self) -> Body:
        return self.record.body

    def on_terminal(self, callback: Callable[[], None]) -> None:
        """Register a callback fired on the open -> terminal transition."""
        if self.record.terminal:
            callback()
            return
        self._terminal_listeners.append(callback)

    def _mark_terminal(self) -> None:
        if self.record.terminal:
            return
        self.record.terminal = True
        listeners, self._terminal_listeners = self._terminal_listeners, []
        for callback in listeners:
            callback()

    # --- non-terminal writes ------------------------------------------

    def status(self, code: int) -> "ResponseAdapter":
        self.record.status_code = int(code)
        return self

    def set(self, key: str, value: Any) -> "ResponseAdapter":
        self.record.set_header(key, value)
        return self

    def set_header(self, key: str, value: Any) -> "ResponseAdapter":
        return self.set(key, value)

    def get_header(self, key: str) -> Optional[str]:
        return self.record.get_header(key)

    # --- terminal writes ----------------------------------------------

    def json(self, payload: Any) -> "ResponseAdapter":
        """Serialize ``payload`` as the JSON body."""
        self.set("Content-Type", JSON_CONTENT_TYPE)
        self.record.body = json.dumps(payload)
        logger.debug("Response JSON", extra={"status": self.record.status_code})
        self._mark_terminal()
        return self

    def send(self, payload: Any = None) -> "ResponseAdapter":
        """
        Send ``payload`` as the body.

        Structured (non-binary, non-text) values are delegated to json().
        """
        if payload is not None and not isinstance(payload, (str, bytes, bytearray, memoryview)):
            return self.json(payload)

        if isinstance(payload, (bytearray, memoryview)):
            payload = bytes(payload)
        self.record.body = payload if payload is not None else ""
        logger.debug("Response sent", extra={"status": self.record.status_code})
        self._mark_terminal()
        return self

    def end(self, payload: Any = None) -> "ResponseAdapter":
        if payload is not None:
            return self.send(payload)
        self._mark_terminal()
        return self

    def send_status(self, code: int) -> "ResponseAdapter":
        try:
            phrase = HTTPStatus(code).phrase
        except ValueError:
            phrase = str(code)
        self.status(code).set("Content-Type", DEFAULT_CONTENT_TYPE)
        return self.send(phrase)

    def redirect(self, location: str, status: int = 302) -> "ResponseAdapter":
        self.status(status).set("Location", location)
        logger.debug("Redirected", extra={"location": location, "status": status})
        return self.end()

    def send_file(self, file_path: Union[str, Path]) -> "ResponseAdapter":
        """
        Send a file's contents with a Content-Type inferred from its extension.

        A file that cannot be read produces a 404 JSON error instead of raising.
        """
        try:
            content = Path(file_path).read_bytes()
        except (OSError, ValueError, TypeError) as e:
            logger.warning(
                "send_file failed to read file",
                extra={"file_path": str(file_path), "error_detail": str(e)},
            )
            return self.status(404).json({"error": "File not found"})

        self.set("Content-Type", content_type_for(file_path))
        return self.send(content)
