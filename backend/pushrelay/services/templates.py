"""Notification templates for the event-driven push notifications."""
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}")


@dataclass
class NotificationMessage:
    """A ready-to-send notification."""
    title: str
    body: str
    data: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NotificationMessage":
        return cls(
            title=payload.get("title", ""),
            body=payload.get("body", ""),
            data=dict(payload.get("data") or {}),
        )

    def to_dict(self) -> dict:
        return {"title": self.title, "body": self.body, "data": dict(self.data)}


@dataclass(frozen=True)
class NotificationTemplate:
    """Title/body with ``{{name}}`` placeholders plus the static data payload.

    ``category`` is the user preference that must be on for the
    notification to be delivered.
    """
    key: str
    category: str
    title: str
    body: str
    data: Mapping[str, str]


def substitute(text: str, fields: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders with values from ``fields``.

    Placeholders whose field is missing (or None) are left as-is.
    """
    def _replace(match: re.Match) -> str:
        value = fields.get(match.group(1))
        if value is None:
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, text)


def render_template(
    template: NotificationTemplate,
    fields: Mapping[str, Any],
    extra_data: Optional[Mapping[str, Any]] = None,
) -> NotificationMessage:
    """Build a NotificationMessage from a template.

    Args:
        template: One of PUSH_TEMPLATES
        fields: Placeholder values, e.g. {"senderName": "Alex"}
        extra_data: Identifying fields merged over the template's data

    Returns:
        The rendered notification
    """
    data = dict(template.data)
    if extra_data:
        data.update(extra_data)
    return NotificationMessage(
        title=substitute(template.title, fields),
        body=substitute(template.body, fields),
        data=data,
    )


def _template(key: str, category: str, title: str, body: str, type_: str, click_action: str):
    return NotificationTemplate(
        key=key,
        category=category,
        title=title,
        body=body,
        data=MappingProxyType({"type": type_, "clickAction": click_action}),
    )


PUSH_TEMPLATES: Mapping[str, NotificationTemplate] = MappingProxyType({
    "NEW_MESSAGE": _template(
        "NEW_MESSAGE", "messages",
        "New Message", "{{senderName}} sent you a message",
        "message", "OPEN_CHAT",
    ),
    "NEW_FOLLOWER": _template(
        "NEW_FOLLOWER", "followers",
        "New Follower", "{{followerName}} started following you",
        "follower", "OPEN_PROFILE",
    ),
    "PROJECT_INVITATION": _template(
        "PROJECT_INVITATION", "projects",
        "Project Invitation", '{{inviterName}} invited you to join "{{projectTitle}}"',
        "project_invitation", "OPEN_PROJECT",
    ),
    "EVENT_REMINDER": _template(
        "EVENT_REMINDER", "events",
        "Event Reminder", '"{{eventTitle}}" starts in {{timeUntil}}',
        "event_reminder", "OPEN_EVENT",
    ),
    "POST_LIKE": _template(
        "POST_LIKE", "posts",
        "New Like", "{{likerName}} liked your post",
        "post_like", "OPEN_POST",
    ),
    "COMMENT_REPLY": _template(
        "COMMENT_REPLY", "comments",
        "New Reply", "{{replierName}} replied to your comment",
        "comment_reply", "OPEN_POST",
    ),
})
