"""
HTTP trigger emulation for the local development server.

Converts a Starlette request into the platform request shape the handler
receives in production, and converts the handler's output back into a
Starlette response.
"""

import base64
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import Response

from ..config import OutboundConvention
from .response_adapter import Body

logger = logging.getLogger("bridge.trigger")


def build_platform_request(request: Request, body: bytes) -> Dict[str, Any]:
    """
    Build the platform request mapping from an incoming HTTP request.

    Query parameters are left unparsed so the bridge parses them itself.
    """
    raw_query = request.url.query
    url = request.url.path + (f"?{raw_query}" if raw_query else "")
    client_ip = request.headers.get("x-forwarded-for")
    if client_ip:
        client_ip = client_ip.split(",")[0].strip()
    elif request.client:
        client_ip = request.client.host

    return {
        "method": request.method,
        "path": request.url.path,
        "url": url,
        "headers": dict(request.headers),
        "body": body,
        "clientIP": client_ip,
    }


class BufferedResponseChannel:
    """In-memory platform response channel (CHANNEL convention)."""

    def __init__(self):
        self.status_code = 200
        self.headers: Dict[str, str] = {}
        self.body: Body = None
        self.sent = False

    def set_header(self, key: str, value: str) -> None:
        self.headers[key] = value

    def remove_header(self, key: str) -> None:
        self.headers.pop(key, None)

    def send(self, body: Body) -> None:
        if self.sent:
            raise RuntimeError("Response channel already sent")
        self.body = body
        self.sent = True

    def to_response(self) -> Response:
        return Response(
            content=self.body if self.body is not None else b"",
            status_code=self.status_code,
            headers=self.headers,
        )


def result_to_response(result: Optional[Dict[str, Any]]) -> Response:
    """Convert a RESULT-convention dict into a Starlette response."""
    if not result:
        logger.error("Handler returned no result")
        return Response(status_code=502, content=b'{"error": "Empty handler result"}')

    body = result.get("body") or ""
    if result.get("isBase64Encoded"):
        content = base64.b64decode(body)
    else:
        content = body.encode("utf-8")
    return Response(
        content=content,
        status_code=result.get("statusCode", 200),
        headers=result.get("headers") or {},
    )


def channel_for(convention: OutboundConvention) -> Optional[BufferedResponseChannel]:
    if OutboundConvention(convention) is OutboundConvention.CHANNEL:
        return BufferedResponseChannel()
    return None
