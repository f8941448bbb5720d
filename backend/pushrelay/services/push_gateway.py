"""Push gateway client - AWS SNS mobile push."""
import asyncio
import json
import logging
from typing import Any, Iterable, List, Mapping, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import GatewayError
from .templates import NotificationMessage

logger = logging.getLogger(__name__)

DEFAULT_ICON = "ic_notification"
DEFAULT_COLOR = "#667eea"
DEFAULT_SOUND = "default"
DEFAULT_CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"


def _apns_payload(message: NotificationMessage) -> dict:
    data = message.data
    return {
        "aps": {
            "alert": {"title": message.title, "body": message.body},
            "badge": data.get("badge") or 1,
            "sound": data.get("sound") or DEFAULT_SOUND,
        },
        "data": data,
    }


def build_endpoint_message(message: NotificationMessage, platform: str = "android") -> dict:
    """Build the per-platform envelope for publishing to a single endpoint.

    ``ios`` (any case) gets the APNS format; every other platform falls
    through to the GCM format.
    """
    data = message.data
    if (platform or "").lower() == "ios":
        return {"APNS": json.dumps(_apns_payload(message))}

    return {
        "GCM": json.dumps({
            "notification": {
                "title": message.title,
                "body": message.body,
                "icon": data.get("icon") or DEFAULT_ICON,
                "color": data.get("color") or DEFAULT_COLOR,
                "sound": data.get("sound") or DEFAULT_SOUND,
            },
            "data": {
                **data,
                "click_action": data.get("clickAction") or DEFAULT_CLICK_ACTION,
            },
        })
    }


def build_topic_message(message: NotificationMessage) -> dict:
    """Build a topic payload carrying both platform envelopes.

    The gateway picks the envelope matching each subscriber's platform and
    falls back to ``default`` (plain body) for anything else.
    """
    data = message.data
    return {
        "default": message.body,
        "GCM": json.dumps({
            "notification": {
                "title": message.title,
                "body": message.body,
                "icon": data.get("icon") or DEFAULT_ICON,
                "color": data.get("color") or DEFAULT_COLOR,
            },
            "data": data,
        }),
        "APNS": json.dumps(_apns_payload(message)),
    }


class PushGatewayClient:
    """Thin async wrapper around the SNS API.

    Every call either returns the gateway's result or raises GatewayError;
    nothing is retried here. boto3 is blocking, so calls run in a worker
    thread.
    """

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "PushGatewayClient":
        """Create a client from application settings.

        Credentials left unset fall back to boto3's default credential chain.
        """
        client = boto3.client(
            "sns",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )
        logger.info(f"SNS client configured (region={settings.aws_region})")
        return cls(client)

    async def _call(self, operation: str, **params) -> dict:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **params)
        except ClientError as e:
            error = e.response.get("Error", {})
            logger.error(f"SNS {operation} error: {error.get('Code')}: {error.get('Message')}")
            raise GatewayError(operation, error.get("Message") or str(e), code=error.get("Code")) from e
        except BotoCoreError as e:
            logger.error(f"SNS {operation} error: {e}")
            raise GatewayError(operation, str(e)) from e

    async def create_endpoint(
        self,
        platform_application_arn: str,
        token: str,
        user_data: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Register a device token with a platform application.

        Returns:
            The endpoint ARN
        """
        result = await self._call(
            "create_platform_endpoint",
            PlatformApplicationArn=platform_application_arn,
            Token=token,
            CustomUserData=json.dumps(dict(user_data or {})),
        )
        logger.info(f"Platform endpoint created: {result['EndpointArn']}")
        return result["EndpointArn"]

    async def publish(
        self,
        endpoint_arn: str,
        message: NotificationMessage,
        platform: str = "android",
    ) -> str:
        """Publish a notification to one endpoint.

        Returns:
            The gateway message id
        """
        result = await self._call(
            "publish",
            TargetArn=endpoint_arn,
            Message=json.dumps(build_endpoint_message(message, platform)),
            MessageStructure="json",
        )
        logger.info(f"Push notification sent: {result['MessageId']}")
        return result["MessageId"]

    async def publish_to_topic(self, topic_arn: str, message: NotificationMessage) -> str:
        """Publish a notification to every endpoint subscribed to a topic."""
        result = await self._call(
            "publish",
            TopicArn=topic_arn,
            Message=json.dumps(build_topic_message(message)),
            MessageStructure="json",
            Subject=message.title,
        )
        logger.info(f"Topic notification sent: {result['MessageId']}")
        return result["MessageId"]

    async def subscribe(self, topic_arn: str, endpoint_arn: str) -> str:
        result = await self._call(
            "subscribe",
            TopicArn=topic_arn,
            Protocol="application",
            Endpoint=endpoint_arn,
        )
        logger.info(f"Endpoint subscribed to topic: {result['SubscriptionArn']}")
        return result["SubscriptionArn"]

    async def unsubscribe(self, subscription_arn: str) -> None:
        await self._call("unsubscribe", SubscriptionArn=subscription_arn)
        logger.info(f"Unsubscribed from topic: {subscription_arn}")

    async def delete_endpoint(self, endpoint_arn: str) -> None:
        await self._call("delete_endpoint", EndpointArn=endpoint_arn)
        logger.info(f"Platform endpoint deleted: {endpoint_arn}")

    async def get_endpoint_attributes(self, endpoint_arn: str) -> dict:
        result = await self._call("get_endpoint_attributes", EndpointArn=endpoint_arn)
        return result.get("Attributes", {})

    async def set_endpoint_attributes(self, endpoint_arn: str, attributes: Mapping[str, str]) -> None:
        await self._call(
            "set_endpoint_attributes",
            EndpointArn=endpoint_arn,
            Attributes=dict(attributes),
        )
        logger.info(f"Endpoint attributes updated: {endpoint_arn}")

    async def create_topic(self, name: str) -> str:
        result = await self._call("create_topic", Name=name)
        logger.info(f"Topic created: {result['TopicArn']}")
        return result["TopicArn"]

    async def list_applications(self) -> list:
        result = await self._call("list_platform_applications")
        return result.get("PlatformApplications", [])

    async def check_configuration(self) -> bool:
        """Make a read-only call to verify credentials and region. Never raises."""
        try:
            await self._call("list_topics")
        except GatewayError as e:
            logger.error(f"SNS configuration error: {e}")
            return False
        logger.info("SNS configuration is valid")
        return True

    async def send_bulk(
        self,
        endpoint_arns: Iterable[str],
        message: NotificationMessage,
        platform: str = "android",
        platforms: Optional[Mapping[str, str]] = None,
    ) -> List[dict]:
        """Publish to each endpoint in turn.

        A failed endpoint is recorded and the loop carries on.

        Args:
            endpoint_arns: Endpoints to publish to
            message: Notification to send
            platform: Platform used for endpoints missing from ``platforms``
            platforms: Optional endpoint ARN -> platform mapping

        Returns:
            One {endpointId, success, messageId | error} dict per endpoint
        """
        platforms = platforms or {}
        results = []

        for endpoint_arn in endpoint_arns:
            try:
                message_id = await self.publish(
                    endpoint_arn,
                    message,
                    platforms.get(endpoint_arn, platform),
                )
                results.append({"endpointId": endpoint_arn, "success": True, "messageId": message_id})
            except GatewayError as e:
                logger.error(f"Bulk push notification error for {endpoint_arn}: {e}")
                results.append({"endpointId": endpoint_arn, "success": False, "error": str(e)})

        sent = sum(1 for r in results if r["success"])
        logger.info(f"Push notifications sent: {sent} success, {len(results) - sent} failed")
        return results
