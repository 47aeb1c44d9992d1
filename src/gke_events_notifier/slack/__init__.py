"""Slack notification formatting and delivery."""

from .delivery import DeliveryAttempt, DeliveryResult, DeliveryState, SlackDelivery
from .formatter import build_message_fields, build_notification, event_type_name
from .payload import SlackAttachmentField, SlackMessageAttachment, SlackRequestBody

__all__ = [
    "SlackDelivery",
    "DeliveryAttempt",
    "DeliveryResult",
    "DeliveryState",
    "SlackRequestBody",
    "SlackMessageAttachment",
    "SlackAttachmentField",
    "build_notification",
    "build_message_fields",
    "event_type_name",
]
