"""
Configuration management for GKE Events Notifier.

Builds one immutable configuration bundle at startup from command-line
values and environment variables. The bundle is passed explicitly to the
server and request handler.
"""

import os
from typing import Any, Dict, FrozenSet, Optional, Union

from pydantic import BaseModel, Field, validator

from .. import __version__
from ..pubsub.filters import parse_allowed_type_urls

# Pub/Sub messages are at most 10 MB, about 13.4 MB once base64 encoded in a push
# request, plus the JSON envelope and attributes.
MAX_PUSH_BODY_BYTES = 16 * 1024 * 1024


class ServerConfig(BaseModel):
    """Configuration for the inbound HTTP listener."""

    host: str = Field(default="", description="Listen host, empty for all interfaces")
    port: int = Field(default=8080, description="Port to listen on")
    verbose: bool = Field(default=False, description="Verbose mode")
    shutdown_grace_seconds: float = Field(
        default=5.0, description="Time allowed for in-flight requests on shutdown"
    )
    max_body_bytes: int = Field(
        default=MAX_PUSH_BODY_BYTES, description="Largest accepted push request body"
    )

    class Config:
        frozen = True
        extra = "forbid"

    @validator("port")
    def validate_port(cls, v: int) -> int:
        """Validate port range."""
        if not 0 <= v <= 65535:
            raise ValueError(f"Invalid port: {v}. Must be between 0 and 65535")
        return v

    @property
    def log_level(self) -> str:
        """Logging level selected by the verbose flag."""
        return "DEBUG" if self.verbose else "INFO"

    @property
    def listen_address(self) -> str:
        """Human readable listen address."""
        return f"{self.host}:{self.port}"


class SlackConfig(BaseModel):
    """Configuration for Slack webhook delivery."""

    webhook_url: str = Field(description="Slack webhook URL")
    timeout_seconds: float = Field(default=10.0, description="Per-attempt request timeout")
    max_attempts: int = Field(default=3, description="Maximum number of delivery attempts")
    base_delay_seconds: float = Field(default=1.0, description="Backoff before the first retry")

    class Config:
        frozen = True
        extra = "forbid"

    @validator("webhook_url")
    def validate_webhook_url(cls, v: str) -> str:
        """Validate webhook URL scheme."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("Slack webhook URL must start with http:// or https://")
        return v

    @validator("max_attempts")
    def validate_max_attempts(cls, v: int) -> int:
        """Validate attempt budget."""
        if v < 1:
            raise ValueError("max_attempts must be at least 1")
        return v


class FilterConfig(BaseModel):
    """Configuration for type_url filtering."""

    allowed_type_urls: FrozenSet[str] = Field(
        default_factory=frozenset,
        description="Allowed type URLs. If empty, all types will be allowed.",
    )

    class Config:
        frozen = True
        extra = "forbid"

    @validator("allowed_type_urls", pre=True)
    def parse_type_urls(cls, v: Any) -> FrozenSet[str]:
        """Accept a comma separated string or an iterable of type URLs."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return parse_allowed_type_urls(v)
        return frozenset(item.strip() for item in v if item and item.strip())


class Config(BaseModel):
    """Main configuration object."""

    version: str = Field(default=__version__, description="Program version")
    server: ServerConfig = Field(default_factory=ServerConfig)
    slack: SlackConfig
    filters: FilterConfig = Field(default_factory=FilterConfig)

    class Config:
        frozen = True
        extra = "forbid"


def load_config(
    slack_webhook_url: Optional[str] = None,
    port: Optional[Union[int, str]] = None,
    allowed_type_urls: Optional[str] = None,
    verbose: bool = False,
) -> Config:
    """
    Load configuration from explicit values and environment variables.

    Explicit arguments win over the PORT, ALLOWED_TYPE_URLS and
    SLACK_WEBHOOK_URL environment variables.

    Args:
        slack_webhook_url: Slack webhook URL
        port: Port to listen on
        allowed_type_urls: Comma separated allowed type URLs
        verbose: Enable debug logging

    Returns:
        Loaded and validated configuration

    Raises:
        ValueError: If configuration is invalid or the webhook URL is missing
    """
    webhook_url = slack_webhook_url or os.getenv("SLACK_WEBHOOK_URL")
    if not webhook_url:
        raise ValueError("Slack webhook URL is required (--slack-webhook-url or SLACK_WEBHOOK_URL)")

    if port is None:
        port = os.getenv("PORT", "8080")

    if allowed_type_urls is None:
        allowed_type_urls = os.getenv("ALLOWED_TYPE_URLS", "")

    config_data: Dict[str, Any] = {
        "server": {"port": int(port), "verbose": verbose},
        "slack": {"webhook_url": webhook_url},
        "filters": {"allowed_type_urls": allowed_type_urls},
    }

    return Config(**config_data)
