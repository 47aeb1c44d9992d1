"""Pub/Sub push message decoding and filtering."""

from .filters import is_type_url_allowed, parse_allowed_type_urls
from .message import MessageAttributes, PubSubMessage, PubSubPushRequest, decode_push_request

__all__ = [
    "MessageAttributes",
    "PubSubMessage",
    "PubSubPushRequest",
    "decode_push_request",
    "is_type_url_allowed",
    "parse_allowed_type_urls",
]
