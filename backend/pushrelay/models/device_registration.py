"""DeviceRegistration model - one row per device registered with the push gateway."""
import json
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from ..config import settings
from ..database import Base


class DeviceRegistration(Base):
    """A device token registered as a gateway endpoint.

    Rows are never deleted: unregistering (or being replaced by a newer
    endpoint) flips ``is_active`` to 0 and stamps ``revoked_at``.
    """

    __tablename__ = settings.registration_table

    id = Column(String, primary_key=True)  # device_<user_id>_<uuid hex>
    user_id = Column(String, nullable=False, index=True)
    device_token = Column(String, nullable=False)
    platform = Column(String, nullable=False)  # ios, android
    endpoint_id = Column(String, nullable=False, index=True)
    subscription_id = Column(String, nullable=True)
    device_info = Column(String, nullable=True)  # JSON
    registered_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Integer, default=1)  # 0 or 1
    revoked_at = Column(DateTime, nullable=True)

    def device_info_dict(self) -> dict:
        if not self.device_info:
            return {}
        return json.loads(self.device_info)
