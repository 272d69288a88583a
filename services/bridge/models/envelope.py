"""
Pydantic model for the inbound platform request.

Normalizes whatever request object the host runtime hands to the handler
(a mapping or an attribute object) into one immutable envelope.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Platform attribute names read by ``InboundEnvelope.from_platform``.
_PLATFORM_FIELDS = ("method", "path", "url", "headers", "queries", "body", "clientIP")


class InboundEnvelope(BaseModel):
    """
    One invocation's request as delivered by the host runtime.

    Header names are lower-cased on construction so lookups are
    case-insensitive.
    """

    method: str = "GET"
    path: str = "/"
    raw_query_string: str = Field(default="", alias="rawQueryString")
    headers: Dict[str, str] = Field(default_factory=dict)
    queries: Optional[Dict[str, Any]] = None
    body: Any = None
    client_ip: Optional[str] = Field(default=None, alias="clientIP")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> str:
        return str(value or "GET").upper()

    @field_validator("headers", mode="before")
    @classmethod
    def _lower_headers(cls, value: Any) -> Dict[str, str]:
        if not value:
            return {}
        headers = {}
        for key, item in dict(value).items():
            if isinstance(item, (list, tuple)):
                item = ", ".join(str(v) for v in item)
            headers[str(key).lower()] = str(item)
        return headers

    @property
    def url(self) -> str:
        """Path plus raw query string, as the chain sees it in ``request.url``."""
        if self.raw_query_string:
            return f"{self.path}?{self.raw_query_string}"
        return self.path

    @classmethod
    def from_platform(cls, request: Any) -> "InboundEnvelope":
        """
        Build an envelope from the platform request.

        Accepts a mapping or an object exposing ``method``, ``path``, ``url``,
        ``headers``, ``queries``, ``body`` and ``clientIP``. When ``url`` is
        present it supplies the raw query string (and the path, if missing).
        """
        if isinstance(request, InboundEnvelope):
            return request

        if isinstance(request, dict):
            raw = {name: request.get(name) for name in _PLATFORM_FIELDS}
            raw_query = request.get("rawQueryString")
        else:
            raw = {name: getattr(request, name, None) for name in _PLATFORM_FIELDS}
            raw_query = getattr(request, "rawQueryString", None)

        path = raw["path"]
        url = raw.pop("url")
        if isinstance(url, str) and url:
            url_path, _, url_query = url.partition("?")
            if not path:
                path = url_path
            if raw_query is None:
                raw_query = url_query

        return cls(
            method=raw["method"],
            path=path or "/",
            rawQueryString=raw_query or "",
            headers=raw["headers"],
            queries=raw["queries"],
            body=raw["body"],
            clientIP=raw["clientIP"],
        )
