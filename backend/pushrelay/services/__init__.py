"""Services for device registration and push notification delivery."""
from .push_gateway import PushGatewayClient
from .push_service import PushConfig, PushNotificationService
from .registration_store import RegistrationStore
from .templates import NotificationMessage, NotificationTemplate, PUSH_TEMPLATES
from .user_store import UserPushProfile, UserPushStore

__all__ = [
    "PushGatewayClient",
    "PushConfig",
    "PushNotificationService",
    "RegistrationStore",
    "NotificationMessage",
    "NotificationTemplate",
    "PUSH_TEMPLATES",
    "UserPushProfile",
    "UserPushStore",
]
