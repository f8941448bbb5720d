"""Device registration store - the registration table behind device registration."""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, List, Mapping, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import DeviceRegistration
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


def generate_registration_id(user_id: str) -> str:
    """Build a unique registration key for a user."""
    return f"device_{user_id}_{uuid.uuid4().hex}"


class RegistrationStore:
    """Reads and writes DeviceRegistration rows for one session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def save(
        self,
        user_id: str,
        device_token: str,
        platform: str,
        endpoint_id: str,
        subscription_id: Optional[str] = None,
        device_info: Optional[Mapping[str, Any]] = None,
    ) -> DeviceRegistration:
        """Record a new active registration."""
        registration = DeviceRegistration(
            id=generate_registration_id(user_id),
            user_id=user_id,
            device_token=device_token,
            platform=platform,
            endpoint_id=endpoint_id,
            subscription_id=subscription_id,
            device_info=json.dumps(dict(device_info or {})),
            registered_at=datetime.utcnow(),
            is_active=1,
        )
        self._session.add(registration)
        await retry_on_lock(self._session.commit)

        logger.info(f"Device registration stored: {registration.id}")
        return registration

    async def get(self, registration_id: str) -> Optional[DeviceRegistration]:
        result = await self._session.execute(
            select(DeviceRegistration).where(DeviceRegistration.id == registration_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: str, active_only: bool = False) -> List[DeviceRegistration]:
        query = select(DeviceRegistration).where(DeviceRegistration.user_id == user_id)
        if active_only:
            query = query.where(DeviceRegistration.is_active == 1)
        result = await self._session.execute(query.order_by(DeviceRegistration.registered_at))
        return list(result.scalars().all())

    async def active_for_endpoint(self, user_id: str, endpoint_id: str) -> List[DeviceRegistration]:
        result = await self._session.execute(
            select(DeviceRegistration).where(
                and_(
                    DeviceRegistration.user_id == user_id,
                    DeviceRegistration.endpoint_id == endpoint_id,
                    DeviceRegistration.is_active == 1,
                )
            )
        )
        return list(result.scalars().all())

    async def revoke_endpoint(self, user_id: str, endpoint_id: str) -> int:
        """Mark a user's active registrations for an endpoint as revoked.

        Returns:
            Number of rows revoked
        """
        registrations = await self.active_for_endpoint(user_id, endpoint_id)
        if not registrations:
            return 0

        now = datetime.utcnow()
        for registration in registrations:
            registration.is_active = 0
            registration.revoked_at = now

        await retry_on_lock(self._session.commit)
        logger.info(f"Revoked {len(registrations)} registration(s) for endpoint {endpoint_id}")
        return len(registrations)
