"""Pytest configuration: temporary SQLite store and a fake SNS client."""
import json

import pytest
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pushrelay import models  # noqa: F401  (registers tables)
from pushrelay.database import Base, get_db
from pushrelay.main import create_app
from pushrelay.models import User
from pushrelay.services.push_gateway import PushGatewayClient
from pushrelay.services.push_service import PushConfig, PushNotificationService

APP_ARN = "arn:aws:sns:us-east-1:123456789012:app/GCM/pushrelay"
TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:pushrelay-all"


def client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeSNS:
    """Stands in for a boto3 SNS client.

    Endpoints are named end-1, end-2, ... in creation order and, like SNS,
    registering a known token again returns the existing endpoint.
    """

    def __init__(self):
        self.calls = []
        self.endpoints = {}  # endpoint arn -> attributes
        self.subscriptions = {}  # subscription arn -> endpoint arn
        self.fail_publish_for = set()
        self.fail_subscribe = False
        self.fail_delete = False
        self.fail_list_topics = False
        self._messages = 0

    def _record(self, name, params):
        self.calls.append((name, params))

    def calls_to(self, name):
        return [params for call, params in self.calls if call == name]

    def create_platform_endpoint(self, **params):
        self._record("create_platform_endpoint", params)
        for arn, attributes in self.endpoints.items():
            if attributes["Token"] == params["Token"]:
                return {"EndpointArn": arn}
        arn = f"end-{len(self.endpoints) + 1}"
        self.endpoints[arn] = {
            "Token": params["Token"],
            "Enabled": "true",
            "CustomUserData": params.get("CustomUserData", ""),
        }
        return {"EndpointArn": arn}

    def publish(self, **params):
        self._record("publish", params)
        if params.get("TargetArn") in self.fail_publish_for:
            raise client_error("EndpointDisabled", "Endpoint is disabled", "Publish")
        self._messages += 1
        return {"MessageId": f"msg-{self._messages}"}

    def subscribe(self, **params):
        self._record("subscribe", params)
        if self.fail_subscribe:
            raise client_error("InvalidParameter", "Invalid parameter: TopicArn", "Subscribe")
        arn = f"sub-{len(self.subscriptions) + 1}"
        self.subscriptions[arn] = params["Endpoint"]
        return {"SubscriptionArn": arn}

    def unsubscribe(self, **params):
        self._record("unsubscribe", params)
        self.subscriptions.pop(params["SubscriptionArn"], None)
        return {}

    def delete_endpoint(self, **params):
        self._record("delete_endpoint", params)
        if self.fail_delete:
            raise client_error("InternalError", "Service unavailable", "DeleteEndpoint")
        self.endpoints.pop(params["EndpointArn"], None)
        return {}

    def get_endpoint_attributes(self, **params):
        self._record("get_endpoint_attributes", params)
        if params["EndpointArn"] not in self.endpoints:
            raise client_error("NotFound", "Endpoint does not exist", "GetEndpointAttributes")
        return {"Attributes": dict(self.endpoints[params["EndpointArn"]])}

    def set_endpoint_attributes(self, **params):
        self._record("set_endpoint_attributes", params)
        self.endpoints[params["EndpointArn"]].update(params["Attributes"])
        return {}

    def create_topic(self, **params):
        self._record("create_topic", params)
        return {"TopicArn": f"arn:aws:sns:us-east-1:123456789012:{params['Name']}"}

    def list_platform_applications(self, **params):
        self._record("list_platform_applications", params)
        return {"PlatformApplications": [{"PlatformApplicationArn": APP_ARN, "Attributes": {}}]}

    def list_topics(self, **params):
        self._record("list_topics", params)
        if self.fail_list_topics:
            raise client_error("InvalidClientTokenId", "The security token is invalid", "ListTopics")
        return {"Topics": [{"TopicArn": TOPIC_ARN}]}


def published_payload(params: dict) -> dict:
    """Decode the Message of a recorded publish call."""
    return json.loads(params["Message"])


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def sns():
    return FakeSNS()


@pytest.fixture
def gateway(sns):
    return PushGatewayClient(sns)


@pytest.fixture
def service(gateway, session_factory):
    return PushNotificationService(PushConfig(APP_ARN, TOPIC_ARN), gateway, session_factory)


@pytest.fixture
def make_user(session_factory):
    async def _make_user(user_id: str, **fields) -> User:
        fields.setdefault("first_name", user_id.title())
        fields.setdefault("username", user_id.lower())
        async with session_factory() as session:
            user = User(id=user_id, **fields)
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def app(service, gateway, session_factory):
    app = create_app()
    app.state.push_gateway = gateway
    app.state.push_service = service

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
