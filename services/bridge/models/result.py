"""
Invocation result models.

The shape returned to the host runtime under the ``result`` outbound
convention.
"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class InvocationResult(BaseModel):
    """
    HTTP-shaped result of one invocation.

    Use model_dump() to hand it to the host runtime.
    """

    statusCode: int = 200
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    isBase64Encoded: bool = False
