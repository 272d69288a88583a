"""
Request translation.

Reshapes an InboundEnvelope into the request object the middleware chain
expects (method, url, path, headers, body, query, header getter).
"""

import logging
from types import SimpleNamespace
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlsplit

from ..models.envelope import InboundEnvelope

logger = logging.getLogger("bridge.request_translator")

# Placeholder origin for path-only URLs so urlsplit sees a full URL.
PLACEHOLDER_ORIGIN = "http://dummy.com"
DEFAULT_CLIENT_IP = "127.0.0.1"


def parse_query_params(url: str) -> Dict[str, str]:
    """
    Parse the query string of a path-only or absolute URL.

    Blank values are kept and the last value wins for repeated keys.
    A malformed URL yields an empty mapping instead of raising.
    """
    try:
        url_with_scheme = url if url.startswith("http") else f"{PLACEHOLDER_ORIGIN}{url}"
        query = urlsplit(url_with_scheme).query
        return dict(parse_qsl(query, keep_blank_values=True))
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(
            "Failed to parse request URL, continuing with empty query",
            extra={"url": repr(url)[:200], "error_detail": str(e)},
        )
        return {}


class SyntheticRequest:
    """
    The request object handed to the middleware chain.

    A read-only view over the envelope. Middleware attaches derived values
    (parsed bodies and the like) to ``state``.
    """

    protocol = "http"
    secure = False

    def __init__(
        self,
        method: str,
        url: str,
        path: str,
        headers: Dict[str, str],
        body: Any,
        query: Dict[str, Any],
        ip: str = DEFAULT_CLIENT_IP,
    ):
        self.method = method
        self.url = url
        self.path = path
        self.headers = headers
        self.body = body
        self.query = query
        self.ip = ip
        self.params: Dict[str, str] = {}
        self.state = SimpleNamespace()

    def get(self, header: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(header.lower())

    header = get

    def __repr__(self) -> str:
        return f"<SyntheticRequest {self.method} {self.url}>"


def translate_request(envelope: InboundEnvelope) -> SyntheticRequest:
    """
    Build the chain's request from an envelope.

    Pre-parsed platform query parameters are used verbatim; otherwise the
    query is parsed from the envelope URL.
    """
    if envelope.queries is not None:
        query = dict(envelope.queries)
    else:
        query = parse_query_params(envelope.url)

    return SyntheticRequest(
        method=envelope.method,
        url=envelope.url,
        path=envelope.path,
        headers=dict(envelope.headers),
        body=envelope.body,
        query=query,
        ip=envelope.client_ip or DEFAULT_CLIENT_IP,
    )
