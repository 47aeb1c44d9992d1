"""
Slack incoming webhook payload structures.

Optional members are left out of the wire format when empty; ``attachments``
and ``fields`` are always present.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SlackAttachmentField:
    """A labelled key/value pair rendered inside an attachment."""

    title: str
    value: str
    short: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "short": self.short,
            "title": self.title,
            "value": self.value,
        }


@dataclass(frozen=True)
class SlackMessageAttachment:
    """Slack message attachment."""

    text: Optional[str] = None
    color: Optional[str] = None
    mrkdwn_in: List[str] = field(default_factory=list)
    fields: List[SlackAttachmentField] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        attachment: Dict[str, Any] = {}
        if self.text:
            attachment["text"] = self.text
        if self.color:
            attachment["color"] = self.color
        if self.mrkdwn_in:
            attachment["mrkdwn_in"] = list(self.mrkdwn_in)
        attachment["fields"] = [f.to_dict() for f in self.fields]
        return attachment


@dataclass(frozen=True)
class SlackRequestBody:
    """Body POSTed to the Slack webhook."""

    text: Optional[str] = None
    attachments: List[SlackMessageAttachment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        body: Dict[str, Any] = {}
        if self.text:
            body["text"] = self.text
        body["attachments"] = [a.to_dict() for a in self.attachments]
        return body

    def to_json(self) -> bytes:
        """Serialize to the bytes sent on every delivery attempt."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False).encode(
            "utf-8"
        )
