"""Push notification API endpoints."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import push_configuration_status
from ..database import get_db
from ..errors import ConfigurationError
from ..models import User
from ..schemas.push import (
    BulkSendResponse,
    CommentReplyNotifyRequest,
    DeviceRegisterRequest,
    DeviceRegisterResponse,
    EventReminderNotifyRequest,
    FollowerNotifyRequest,
    MessageNotifyRequest,
    MessageResponse,
    NotificationPreferences,
    NotificationStatus,
    PostLikeNotifyRequest,
    PreferencesResponse,
    PreferencesUpdateResponse,
    ProjectInvitationNotifyRequest,
    PushConfigStatus,
    SelfNotificationRequest,
    SendBulkRequest,
    SendResult,
    SendToUserRequest,
    NotificationPayload,
)
from ..services.push_gateway import PushGatewayClient
from ..services.push_service import PushNotificationService
from ..services.user_store import UserPushStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/push", tags=["push"])


async def get_current_user(
    x_user_id: str = Header(..., min_length=1),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from the X-User-Id header set by the auth layer."""
    user = await UserPushStore(db).get_user(x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def get_push_service(request: Request) -> PushNotificationService:
    service = getattr(request.app.state, "push_service", None)
    if service is None:
        raise ConfigurationError("Push notification service not initialized")
    return service


def get_push_gateway(request: Request) -> PushGatewayClient:
    return request.app.state.push_gateway


def _actor(user: User) -> dict:
    """Fields of the acting user that notification templates use."""
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "username": user.username,
    }


@router.post("/register", response_model=DeviceRegisterResponse)
async def register_device(
    request: DeviceRegisterRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    """Register the caller's device for push notifications."""
    return await service.register_device(
        user.id,
        request.device_token,
        request.platform,
        request.device_info,
    )


@router.post("/unregister", response_model=MessageResponse)
async def unregister_device(
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    """Unregister the caller's stored device."""
    if not user.push_endpoint_id:
        raise HTTPException(status_code=400, detail="No registered device found")

    return await service.unregister_device(user.id, user.push_endpoint_id)


@router.post("/send", response_model=SendResult, response_model_exclude_none=True)
async def send_to_user(
    request: SendToUserRequest,
    admin: User = Depends(require_admin),
    service: PushNotificationService = Depends(get_push_service),
):
    """Send a push notification to a specific user (admin only)."""
    notification = {"title": request.title, "body": request.body, "data": request.data}
    return await service.send_to_user(request.user_id, notification)


@router.post("/send-bulk", response_model=BulkSendResponse, response_model_exclude_none=True)
async def send_bulk(
    request: SendBulkRequest,
    admin: User = Depends(require_admin),
    service: PushNotificationService = Depends(get_push_service),
):
    """Send a push notification to multiple users (admin only)."""
    notification = {"title": request.title, "body": request.body, "data": request.data}
    results = await service.send_to_users(request.user_ids, notification)

    sent = sum(1 for r in results if r["success"])
    logger.info(f"Bulk send by {admin.id}: {sent}/{len(results)} delivered")
    return {
        "success": True,
        "sent": sent,
        "failed": len(results) - sent,
        "total": len(results),
        "results": results,
    }


@router.post("/broadcast", response_model=SendResult, response_model_exclude_none=True)
async def broadcast(
    request: NotificationPayload,
    admin: User = Depends(require_admin),
    service: PushNotificationService = Depends(get_push_service),
):
    """Send a notification to every registered device (admin only)."""
    notification = {"title": request.title, "body": request.body, "data": request.data}
    return await service.send_broadcast(notification)


@router.post("/test", response_model=SendResult, response_model_exclude_none=True)
async def send_test_notification(
    request: Optional[SelfNotificationRequest] = None,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    """Send a test notification to the caller."""
    request = request or SelfNotificationRequest()
    notification = {
        "title": request.title,
        "body": request.body,
        "data": {
            "type": "test",
            "timestamp": datetime.utcnow().isoformat(),
        },
    }
    return await service.send_to_user(user.id, notification)


@router.get("/status", response_model=NotificationStatus)
async def get_status(
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    """Get the caller's push notification status."""
    return await service.get_notification_status(user.id)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    status = await service.get_notification_status(user.id)
    return {"preferences": status["preferences"]}


@router.put("/preferences", response_model=PreferencesUpdateResponse)
async def update_preferences(
    preferences: NotificationPreferences,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    """Replace the caller's notification preferences. Omitted categories default to on."""
    return await service.update_notification_preferences(user.id, preferences.model_dump())


@router.get("/config", response_model=PushConfigStatus)
async def get_config(
    admin: User = Depends(require_admin),
    gateway: PushGatewayClient = Depends(get_push_gateway),
):
    """Check gateway reachability and which SNS identifiers are set (admin only)."""
    configured = await gateway.check_configuration()
    return {"configured": configured, **push_configuration_status()}


@router.post("/notify/message", response_model=SendResult, response_model_exclude_none=True)
async def notify_message(
    request: MessageNotifyRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    return await service.send_new_message_notification(
        request.recipient_id,
        _actor(user),
        request.message_data.model_dump(by_alias=True),
    )


@router.post("/notify/follower", response_model=SendResult, response_model_exclude_none=True)
async def notify_follower(
    request: FollowerNotifyRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    return await service.send_new_follower_notification(request.user_id, _actor(user))


@router.post("/notify/project-invitation", response_model=SendResult, response_model_exclude_none=True)
async def notify_project_invitation(
    request: ProjectInvitationNotifyRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    return await service.send_project_invitation_notification(
        request.invited_user_id,
        _actor(user),
        request.project.model_dump(by_alias=True),
    )


@router.post("/notify/event-reminder", response_model=SendResult, response_model_exclude_none=True)
async def notify_event_reminder(
    request: EventReminderNotifyRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    return await service.send_event_reminder_notification(
        request.user_id,
        request.event.model_dump(by_alias=True),
        request.time_until,
    )


@router.post("/notify/post-like", response_model=SendResult, response_model_exclude_none=True)
async def notify_post_like(
    request: PostLikeNotifyRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    return await service.send_post_like_notification(
        request.post_owner_id,
        _actor(user),
        request.post.model_dump(by_alias=True),
    )


@router.post("/notify/comment-reply", response_model=SendResult, response_model_exclude_none=True)
async def notify_comment_reply(
    request: CommentReplyNotifyRequest,
    user: User = Depends(get_current_user),
    service: PushNotificationService = Depends(get_push_service),
):
    return await service.send_comment_reply_notification(
        request.comment_owner_id,
        _actor(user),
        request.comment.model_dump(by_alias=True),
    )
