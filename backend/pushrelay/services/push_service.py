"""Push notification service - device registration and notification dispatch."""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConfigurationError, GatewayError, NotFoundError
from .push_gateway import PushGatewayClient
from .registration_store import RegistrationStore
from .templates import NotificationMessage, PUSH_TEMPLATES, render_template
from .user_store import UserPushProfile, UserPushStore

logger = logging.getLogger(__name__)

Notification = Union[NotificationMessage, Mapping[str, Any]]


@dataclass
class PushConfig:
    """SNS identifiers the service publishes through."""
    platform_application_arn: Optional[str] = None
    topic_arn: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "PushConfig":
        return cls(
            platform_application_arn=settings.sns_platform_application_arn,
            topic_arn=settings.sns_topic_arn,
        )


def _as_message(notification: Notification) -> NotificationMessage:
    if isinstance(notification, NotificationMessage):
        return notification
    return NotificationMessage.from_dict(notification)


class PushNotificationService:
    """Registers devices and sends push notifications.

    Created once at startup. Each operation opens its own database session
    and runs its gateway and store calls one after another.
    """

    def __init__(
        self,
        config: PushConfig,
        gateway: PushGatewayClient,
        session_factory: Callable[[], AsyncSession],
    ):
        if not config.platform_application_arn:
            raise ConfigurationError("SNS platform application ARN is not configured")
        if not config.topic_arn:
            raise ConfigurationError("SNS topic ARN is not configured")

        self._config = config
        self._gateway = gateway
        self._session_factory = session_factory
        logger.info("Push notification service initialized")

    async def register_device(
        self,
        user_id: str,
        device_token: str,
        platform: str = "android",
        device_info: Optional[Mapping[str, Any]] = None,
    ) -> dict:
        """Register a device for push notifications.

        Creates the gateway endpoint, subscribes it to the broadcast topic,
        records the registration and points the user's profile at it. If a
        step after endpoint creation fails, the gateway changes made so far
        are undone before the error is raised.

        Returns:
            {success, endpointId, subscriptionId, message}
        """
        device_info = dict(device_info or {})

        async with self._session_factory() as session:
            users = UserPushStore(session)
            registrations = RegistrationStore(session)

            user = await users.get_user(user_id)
            if not user:
                raise NotFoundError("User", user_id)
            previous_endpoint = user.push_endpoint_id

            endpoint_id = await self._gateway.create_endpoint(
                self._config.platform_application_arn,
                device_token,
                {"userId": user_id, "platform": platform, **device_info},
            )
            # SNS hands back the existing endpoint when the token is already registered
            is_new_endpoint = endpoint_id != previous_endpoint

            subscription_id = None
            registration = None
            try:
                subscription_id = await self._gateway.subscribe(self._config.topic_arn, endpoint_id)
                registration = await registrations.save(
                    user_id=user_id,
                    device_token=device_token,
                    platform=platform,
                    endpoint_id=endpoint_id,
                    subscription_id=subscription_id,
                    device_info=device_info,
                )
                await users.enable_push(user_id, device_token, platform, endpoint_id)
            except Exception as e:
                logger.error(f"Device registration failed for user {user_id}: {e}")
                await session.rollback()
                if is_new_endpoint:
                    await self._undo_registration(endpoint_id, subscription_id)
                    if registration is not None:
                        await self._revoke_saved(registrations, user_id, endpoint_id)
                raise

            if previous_endpoint and is_new_endpoint:
                await self._revoke_endpoint(registrations, user_id, previous_endpoint)

        logger.info(f"Device registered for user {user_id}: {endpoint_id}")
        return {
            "success": True,
            "endpointId": endpoint_id,
            "subscriptionId": subscription_id,
            "message": "Device registered for push notifications",
        }

    async def _undo_registration(self, endpoint_id: str, subscription_id: Optional[str]):
        """Remove a half-finished registration from the gateway. Errors are only logged."""
        if subscription_id:
            try:
                await self._gateway.unsubscribe(subscription_id)
            except GatewayError as e:
                logger.error(f"Rollback: could not unsubscribe {subscription_id}: {e}")
        try:
            await self._gateway.delete_endpoint(endpoint_id)
        except GatewayError as e:
            logger.error(f"Rollback: could not delete endpoint {endpoint_id}: {e}")

    async def _revoke_saved(self, registrations: RegistrationStore, user_id: str, endpoint_id: str):
        try:
            await registrations.revoke_endpoint(user_id, endpoint_id)
        except SQLAlchemyError as e:
            logger.error(f"Rollback: could not revoke registration for {endpoint_id}: {e}")

    async def _revoke_endpoint(self, registrations: RegistrationStore, user_id: str, endpoint_id: str):
        """Retire an endpoint the user's profile no longer points at."""
        for registration in await registrations.active_for_endpoint(user_id, endpoint_id):
            if registration.subscription_id:
                try:
                    await self._gateway.unsubscribe(registration.subscription_id)
                except GatewayError as e:
                    logger.warning(f"Could not unsubscribe {registration.subscription_id}: {e}")
        try:
            await self._gateway.delete_endpoint(endpoint_id)
        except GatewayError as e:
            logger.warning(f"Could not delete replaced endpoint {endpoint_id}: {e}")
        try:
            await registrations.revoke_endpoint(user_id, endpoint_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not revoke registration for replaced endpoint {endpoint_id}: {e}")

    async def unregister_device(self, user_id: str, endpoint_id: str) -> dict:
        """Unregister a device: delete its endpoint and disable the user's push profile.

        The registration rows for the endpoint are kept but marked revoked.
        """
        async with self._session_factory() as session:
            users = UserPushStore(session)
            registrations = RegistrationStore(session)

            if not await users.get_user(user_id):
                raise NotFoundError("User", user_id)

            # A failed delete leaves subscriptions and rows untouched
            try:
                await self._gateway.delete_endpoint(endpoint_id)
            except GatewayError as e:
                logger.error(f"Device unregistration error for user {user_id}: {e}")
                raise

            for registration in await registrations.active_for_endpoint(user_id, endpoint_id):
                if registration.subscription_id:
                    try:
                        await self._gateway.unsubscribe(registration.subscription_id)
                    except GatewayError as e:
                        logger.warning(f"Could not unsubscribe {registration.subscription_id}: {e}")

            await registrations.revoke_endpoint(user_id, endpoint_id)
            await users.disable_push(user_id)

        logger.info(f"Device unregistered for user {user_id}: {endpoint_id}")
        return {
            "success": True,
            "message": "Device unregistered from push notifications",
        }

    async def _get_profile(self, user_id: str) -> Optional[UserPushProfile]:
        async with self._session_factory() as session:
            return await UserPushStore(session).get_profile(user_id)

    async def _deliver(self, profile: Optional[UserPushProfile], message: NotificationMessage) -> dict:
        if not profile or not profile.can_receive:
            return {
                "success": False,
                "message": "User does not have push notifications enabled",
            }

        message_id = await self._gateway.publish(
            profile.endpoint_id,
            message,
            profile.platform or "android",
        )
        return {
            "success": True,
            "messageId": message_id,
            "message": "Push notification sent successfully",
        }

    async def send_to_user(self, user_id: str, notification: Notification) -> dict:
        """Send a notification to one user.

        A user without push enabled or without an endpoint is not an error:
        the result has ``success`` False and the gateway is not called.
        """
        profile = await self._get_profile(user_id)
        return await self._deliver(profile, _as_message(notification))

    async def send_to_users(self, user_ids: Iterable[str], notification: Notification) -> List[dict]:
        """Send a notification to every user in ``user_ids`` that can receive it.

        Each endpoint is published with its own user's platform.

        Returns:
            Per-endpoint results from the bulk send
        """
        async with self._session_factory() as session:
            profiles = await UserPushStore(session).find_enabled(user_ids)

        if not profiles:
            return []

        endpoint_ids = [profile.endpoint_id for profile in profiles]
        platforms = {profile.endpoint_id: profile.platform or "android" for profile in profiles}
        return await self._gateway.send_bulk(endpoint_ids, _as_message(notification), platforms=platforms)

    async def send_broadcast(self, notification: Notification) -> dict:
        """Send a notification to every endpoint subscribed to the broadcast topic."""
        if not self._config.topic_arn:
            raise ConfigurationError("SNS topic ARN is not configured")

        message_id = await self._gateway.publish_to_topic(self._config.topic_arn, _as_message(notification))
        return {
            "success": True,
            "messageId": message_id,
            "message": "Broadcast notification sent successfully",
        }

    async def _send_event(
        self,
        user_id: str,
        template_key: str,
        fields: Mapping[str, Any],
        extra_data: Mapping[str, Any],
    ) -> dict:
        template = PUSH_TEMPLATES[template_key]
        profile = await self._get_profile(user_id)

        if profile and not profile.allows(template.category):
            return {
                "success": False,
                "message": f"User has disabled {template.category} notifications",
            }

        message = render_template(template, fields, extra_data)
        return await self._deliver(profile, message)

    async def send_new_message_notification(
        self,
        recipient_id: str,
        sender: Mapping[str, Any],
        message_data: Mapping[str, Any],
    ) -> dict:
        return await self._send_event(
            recipient_id,
            "NEW_MESSAGE",
            {"senderName": sender.get("firstName")},
            {
                "senderId": sender.get("id"),
                "messageId": message_data.get("messageId"),
                "conversationId": message_data.get("conversationId"),
            },
        )

    async def send_new_follower_notification(self, user_id: str, follower: Mapping[str, Any]) -> dict:
        return await self._send_event(
            user_id,
            "NEW_FOLLOWER",
            {"followerName": follower.get("firstName")},
            {
                "followerId": follower.get("id"),
                "followerUsername": follower.get("username"),
            },
        )

    async def send_project_invitation_notification(
        self,
        invited_user_id: str,
        inviter: Mapping[str, Any],
        project: Mapping[str, Any],
    ) -> dict:
        return await self._send_event(
            invited_user_id,
            "PROJECT_INVITATION",
            {"inviterName": inviter.get("firstName"), "projectTitle": project.get("title")},
            {
                "inviterId": inviter.get("id"),
                "projectId": project.get("projectId"),
            },
        )

    async def send_event_reminder_notification(
        self,
        user_id: str,
        event: Mapping[str, Any],
        time_until: str,
    ) -> dict:
        """Remind a user of an upcoming event; ``time_until`` is e.g. "30 minutes"."""
        return await self._send_event(
            user_id,
            "EVENT_REMINDER",
            {"eventTitle": event.get("title"), "timeUntil": time_until},
            {"eventId": event.get("eventId")},
        )

    async def send_post_like_notification(
        self,
        post_owner_id: str,
        liker: Mapping[str, Any],
        post: Mapping[str, Any],
    ) -> dict:
        return await self._send_event(
            post_owner_id,
            "POST_LIKE",
            {"likerName": liker.get("firstName")},
            {
                "likerId": liker.get("id"),
                "postId": post.get("postId"),
            },
        )

    async def send_comment_reply_notification(
        self,
        comment_owner_id: str,
        replier: Mapping[str, Any],
        comment: Mapping[str, Any],
    ) -> dict:
        return await self._send_event(
            comment_owner_id,
            "COMMENT_REPLY",
            {"replierName": replier.get("firstName")},
            {
                "replierId": replier.get("id"),
                "commentId": comment.get("commentId"),
                "postId": comment.get("postId"),
            },
        )

    async def update_notification_preferences(self, user_id: str, preferences: Mapping[str, bool]) -> dict:
        """Overwrite a user's notification preferences."""
        async with self._session_factory() as session:
            saved = await UserPushStore(session).set_preferences(user_id, preferences)

        return {
            "success": True,
            "preferences": saved,
            "message": "Push notification preferences updated",
        }

    async def get_notification_status(self, user_id: str) -> dict:
        """Get a user's push status; preferences default to all enabled.

        Raises:
            NotFoundError: If the user does not exist
        """
        profile = await self._get_profile(user_id)
        if not profile:
            raise NotFoundError("User", user_id)

        return {
            "enabled": profile.enabled,
            "platform": profile.platform,
            "hasValidEndpoint": bool(profile.endpoint_id),
            "preferences": profile.effective_preferences(),
        }
