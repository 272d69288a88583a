"""
Bridge configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from enum import Enum
from pathlib import Path
from typing import List

from pydantic import Field
from services.common.core.config import BaseAppConfig

_REPO_ROOT = Path(__file__).resolve().parents[2]


class OutboundConvention(str, Enum):
    """How a committed response leaves the handler."""

    # Return {"statusCode", "headers", "body", "isBase64Encoded"}.
    RESULT = "result"
    # Write status/headers/body onto the platform response channel.
    CHANNEL = "channel"


class BridgeConfig(BaseAppConfig):
    """
    Configuration management for the Function Compute bridge.
    """

    # Invocation settings
    INVOKE_TIMEOUT: float = Field(
        default=10.0, gt=0, description="Ceiling for one chain invocation (seconds)"
    )
    OUTBOUND_CONVENTION: OutboundConvention = Field(
        default=OutboundConvention.RESULT, description="Outbound calling convention of the host"
    )

    # Path settings
    STATIC_ROOT: str = Field(
        default=str(_REPO_ROOT / "static"), description="Directory holding index.html"
    )
    LOG_CONFIG_PATH: str = Field(
        default=str(_REPO_ROOT / "config" / "bridge_log.yaml"), description="Logging YAML path"
    )

    # CORS (regex patterns matched against the Origin header)
    CORS_ALLOWED_ORIGINS: List[str] = Field(
        default=[
            r"^https?://(www\.)?ftg-redemption-test\.mybrightsites\.com$",
            r"^https?://(www\.)?ftg-redemption\.mybrightsites\.com$",
            r"^https?://(www\.)?redeem\.forbestravelguide\.com$",
        ],
        description="Allowed origin patterns",
    )

    # Route modules ("package.module:register"), each called with the application
    ROUTE_MODULES: List[str] = Field(default=[], description="Route registration callables")

    # Rate limiting
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=60.0, gt=0, description="Window length")
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, gt=0, description="Requests per window per IP")
    RATE_LIMIT_MAX_CLIENTS: int = Field(default=10000, gt=0, description="Tracked client IPs")

    # Local development server
    BIND_HOST: str = Field(default="0.0.0.0", description="Listen host")
    PORT: int = Field(default=3000, description="Listen port")

    # model_config is inherited


# Load config as a singleton.
# pydantic-settings reads environment variables during instantiation.
try:
    config = BridgeConfig()
except Exception as e:
    sys.stderr.write(f"Failed to load configuration: {e}\n")
    raise
