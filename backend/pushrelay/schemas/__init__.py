"""Pydantic schemas for API request/response models."""
from .push import (
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    NotificationPayload,
    SendToUserRequest,
    SendBulkRequest,
    SendResult,
    BulkSendResponse,
    NotificationPreferences,
    NotificationStatus,
    PushConfigStatus,
)

__all__ = [
    "DeviceRegisterRequest",
    "DeviceRegisterResponse",
    "NotificationPayload",
    "SendToUserRequest",
    "SendBulkRequest",
    "SendResult",
    "BulkSendResponse",
    "NotificationPreferences",
    "NotificationStatus",
    "PushConfigStatus",
]
