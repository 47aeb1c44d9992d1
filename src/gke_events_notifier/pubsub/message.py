"""
Pub/Sub push message schemas and decoding.

Defines the JSON envelope that a Pub/Sub push subscription POSTs to the
notifier and decodes raw request bodies into it. Decoding is all-or-nothing:
any malformed part of the body fails the whole request.
"""

import base64
import binascii
import json
from typing import Any

from pydantic import BaseModel, Field, ValidationError, validator

from ..errors import DecodeError


class MessageAttributes(BaseModel):
    """Attributes attached to a GKE cluster notification."""

    cluster_location: str = Field(default="", description="Cluster location")
    cluster_name: str = Field(default="", description="Cluster name")
    payload: str = Field(default="", description="JSON encoded event payload")
    project_id: str = Field(default="", description="Project number")
    type_url: str = Field(default="", description="Event type identifier")

    class Config:
        frozen = True

    @validator("*", pre=True)
    def null_to_empty(cls, v: Any) -> Any:
        """Treat JSON null attributes as absent."""
        return "" if v is None else v


class PubSubMessage(BaseModel):
    """The message part of a push request."""

    data: bytes = Field(default=b"", description="Event data, base64 encoded on the wire")
    attributes: MessageAttributes = Field(default_factory=MessageAttributes)

    class Config:
        frozen = True

    @validator("data", pre=True)
    def decode_data(cls, v: Any) -> bytes:
        """Decode base64 event data."""
        if v is None:
            return b""
        if isinstance(v, bytes):
            return v
        if not isinstance(v, str):
            raise ValueError("data must be a base64 encoded string")
        try:
            return base64.b64decode(v, validate=True)
        except binascii.Error as e:
            raise ValueError(f"data is not valid base64: {e}") from e

    @validator("attributes", pre=True)
    def null_attributes(cls, v: Any) -> Any:
        """Treat JSON null attributes as an empty mapping."""
        return {} if v is None else v

    @property
    def event_data(self) -> str:
        """Event data as text."""
        return self.data.decode("utf-8", errors="replace")


class PubSubPushRequest(BaseModel):
    """Envelope POSTed by a Pub/Sub push subscription."""

    message: PubSubMessage
    subscription: str = Field(default="", description="Subscription name")

    class Config:
        frozen = True

    @validator("subscription", pre=True)
    def null_subscription(cls, v: Any) -> Any:
        """Treat JSON null subscription as absent."""
        return "" if v is None else v


def decode_push_request(body: bytes) -> PubSubPushRequest:
    """
    Decode a push request body.

    Args:
        body: Raw HTTP request body

    Returns:
        Decoded push request

    Raises:
        DecodeError: If the body is not JSON or lacks the message object
    """
    try:
        message_data = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Invalid JSON: {e}") from e

    if not isinstance(message_data, dict):
        raise DecodeError(
            "Push request must be a JSON object",
            details={"type": type(message_data).__name__},
        )

    try:
        return PubSubPushRequest(**message_data)
    except ValidationError as e:
        raise DecodeError(f"Invalid push request: {e}", details={"errors": e.error_count()}) from e
