"""
Core logic package.

Provides the request translator, response adapter, completion coordinator
and commit stage.
"""

from .commit import Committer, ResponseChannel
from .coordinator import CompletionCoordinator
from .request_translator import SyntheticRequest, parse_query_params, translate_request
from .response_adapter import CONTENT_TYPES, ResponseAdapter, ResponseRecord

__all__ = [
    "CONTENT_TYPES",
    "Committer",
    "CompletionCoordinator",
    "ResponseAdapter",
    "ResponseChannel",
    "ResponseRecord",
    "SyntheticRequest",
    "parse_query_params",
    "translate_request",
]
