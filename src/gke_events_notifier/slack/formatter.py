"""
Projection of Pub/Sub cluster notifications onto Slack payloads.

Everything here is pure: the same message always yields the same payload.
"""

from typing import List

from ..pubsub.message import PubSubMessage
from .payload import SlackAttachmentField, SlackMessageAttachment, SlackRequestBody


def event_type_name(type_url: str) -> str:
    """
    Short event type name from a type URL.

    ``"type.googleapis.com/google.container.v1beta1.UpgradeEvent"`` becomes
    ``"UpgradeEvent"``; a type URL without dots is returned unchanged.
    """
    return type_url.rsplit(".", 1)[-1]


def build_message_fields(message: PubSubMessage) -> List[SlackAttachmentField]:
    """Attachment fields in fixed order, all laid out side by side."""
    attributes = message.attributes
    return [
        SlackAttachmentField(title="cluster name", value=attributes.cluster_name, short=True),
        SlackAttachmentField(
            title="cluster location", value=attributes.cluster_location, short=True
        ),
        SlackAttachmentField(title="project number", value=attributes.project_id, short=True),
        SlackAttachmentField(
            title="event type", value=event_type_name(attributes.type_url), short=True
        ),
    ]


def build_notification(message: PubSubMessage) -> SlackRequestBody:
    """
    Build the Slack payload for a cluster notification.

    The event data goes into ``text`` verbatim. The attachment does not opt
    into markdown, so Slack shows event content as literal text.
    """
    return SlackRequestBody(
        text=message.event_data,
        attachments=[SlackMessageAttachment(fields=build_message_fields(message))],
    )
