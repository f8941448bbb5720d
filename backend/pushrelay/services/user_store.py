"""User push profile store - the push notification fields of a user record."""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError
from ..models import User, DEFAULT_PREFERENCES
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


@dataclass
class UserPushProfile:
    """Snapshot of a user's push notification profile."""
    user_id: str
    enabled: bool = False
    device_token: Optional[str] = None
    platform: Optional[str] = None
    endpoint_id: Optional[str] = None
    preferences: Optional[dict] = None  # None = never set

    @classmethod
    def from_user(cls, user: User) -> "UserPushProfile":
        return cls(
            user_id=user.id,
            enabled=bool(user.push_enabled),
            device_token=user.push_device_token,
            platform=user.push_platform,
            endpoint_id=user.push_endpoint_id,
            preferences=user.preferences_dict(),
        )

    @property
    def can_receive(self) -> bool:
        return self.enabled and bool(self.endpoint_id)

    def effective_preferences(self) -> dict:
        """Stored preferences over the all-enabled defaults."""
        preferences = dict(DEFAULT_PREFERENCES)
        if self.preferences:
            preferences.update(self.preferences)
        return preferences

    def allows(self, category: str) -> bool:
        return bool(self.effective_preferences().get(category, True))


class UserPushStore:
    """Reads and updates user push profiles for one session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_user(self, user_id: str) -> Optional[User]:
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _require_user(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_profile(self, user_id: str) -> Optional[UserPushProfile]:
        user = await self.get_user(user_id)
        if not user:
            return None
        return UserPushProfile.from_user(user)

    async def enable_push(
        self,
        user_id: str,
        device_token: str,
        platform: str,
        endpoint_id: str,
    ) -> UserPushProfile:
        """Point the user's profile at a newly registered endpoint."""
        user = await self._require_user(user_id)
        user.push_enabled = 1
        user.push_device_token = device_token
        user.push_platform = platform
        user.push_endpoint_id = endpoint_id
        user.push_updated_at = datetime.utcnow()

        await retry_on_lock(self._session.commit)
        return UserPushProfile.from_user(user)

    async def disable_push(self, user_id: str) -> UserPushProfile:
        """Turn push off and clear the stored device. Platform and preferences are kept."""
        user = await self._require_user(user_id)
        user.push_enabled = 0
        user.push_device_token = None
        user.push_endpoint_id = None
        user.push_updated_at = datetime.utcnow()

        await retry_on_lock(self._session.commit)
        return UserPushProfile.from_user(user)

    async def set_preferences(self, user_id: str, preferences: Mapping[str, bool]) -> dict:
        """Overwrite the user's preference sub-document."""
        user = await self._require_user(user_id)
        user.push_preferences = json.dumps(dict(preferences))
        user.push_updated_at = datetime.utcnow()

        await retry_on_lock(self._session.commit)
        return user.preferences_dict()

    async def find_enabled(self, user_ids: Iterable[str]) -> List[UserPushProfile]:
        """Profiles among ``user_ids`` that have push enabled and an endpoint."""
        user_ids = list(user_ids)
        if not user_ids:
            return []

        result = await self._session.execute(
            select(User).where(
                and_(
                    User.id.in_(user_ids),
                    User.push_enabled == 1,
                    User.push_endpoint_id.is_not(None),
                )
            )
        )
        return [UserPushProfile.from_user(user) for user in result.scalars().all()]
