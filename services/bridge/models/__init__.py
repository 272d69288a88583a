"""
Data model definitions package.

Aggregates Pydantic models for use in other modules.
"""

from .envelope import InboundEnvelope
from .result import InvocationResult

__all__ = [
    "InboundEnvelope",
    "InvocationResult",
]
