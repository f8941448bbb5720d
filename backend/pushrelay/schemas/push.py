"""Push notification schemas for API.

JSON keys are camelCase (``deviceToken``, ``userIds``); snake_case names
are accepted too.
"""
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class PushModel(BaseModel):
    """Base model with camelCase aliases."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# Requests

class DeviceRegisterRequest(PushModel):
    """Request to register a device for push notifications."""
    device_token: str = Field(..., min_length=1)
    platform: Literal["ios", "android"]
    device_info: Dict[str, Any] = Field(default_factory=dict)


class NotificationPayload(PushModel):
    """Title, body and data of a notification."""
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)


class SendToUserRequest(NotificationPayload):
    user_id: str = Field(..., min_length=1)


class SendBulkRequest(NotificationPayload):
    user_ids: List[str]


class SelfNotificationRequest(PushModel):
    title: str = "Test Notification"
    body: str = "This is a test push notification!"


class NotificationPreferences(PushModel):
    """Per-category push preferences."""
    messages: bool = True
    followers: bool = True
    projects: bool = True
    events: bool = True
    posts: bool = True
    comments: bool = True


class MessageData(PushModel):
    message_id: str
    conversation_id: Optional[str] = None


class MessageNotifyRequest(PushModel):
    recipient_id: str = Field(..., min_length=1)
    message_data: MessageData


class FollowerNotifyRequest(PushModel):
    user_id: str = Field(..., min_length=1)


class ProjectRef(PushModel):
    project_id: str
    title: str


class ProjectInvitationNotifyRequest(PushModel):
    invited_user_id: str = Field(..., min_length=1)
    project: ProjectRef


class EventRef(PushModel):
    event_id: str
    title: str


class EventReminderNotifyRequest(PushModel):
    user_id: str = Field(..., min_length=1)
    event: EventRef
    time_until: str = Field(..., min_length=1)  # e.g. "30 minutes"


class PostRef(PushModel):
    post_id: str


class PostLikeNotifyRequest(PushModel):
    post_owner_id: str = Field(..., min_length=1)
    post: PostRef


class CommentRef(PushModel):
    comment_id: str
    post_id: Optional[str] = None


class CommentReplyNotifyRequest(PushModel):
    comment_owner_id: str = Field(..., min_length=1)
    comment: CommentRef


# Responses

class DeviceRegisterResponse(PushModel):
    success: bool
    endpoint_id: str
    subscription_id: Optional[str] = None
    message: str


class MessageResponse(PushModel):
    success: bool
    message: str


class SendResult(PushModel):
    """Result of a single send; ``success`` is False when there was nothing to send to."""
    success: bool
    message_id: Optional[str] = None
    message: str


class BulkSendResult(PushModel):
    endpoint_id: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class BulkSendResponse(PushModel):
    success: bool
    sent: int
    failed: int
    total: int
    results: List[BulkSendResult]


class NotificationStatus(PushModel):
    enabled: bool
    platform: Optional[str] = None
    has_valid_endpoint: bool
    preferences: NotificationPreferences


class PreferencesResponse(PushModel):
    preferences: NotificationPreferences


class PreferencesUpdateResponse(PushModel):
    success: bool
    preferences: NotificationPreferences
    message: str


class PushConfigStatus(PushModel):
    """Gateway reachability plus which identifiers are set."""
    configured: bool
    platform_application_arn: Literal["configured", "missing"]
    topic_arn: Literal["configured", "missing"]
