"""User model - the application user record with its push notification profile."""
import json
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base


# Preference categories, all enabled until the user changes them
DEFAULT_PREFERENCES = {
    "messages": True,
    "followers": True,
    "projects": True,
    "events": True,
    "posts": True,
    "comments": True,
}


class User(Base):
    """Application user.

    The ``push_*`` columns form the push notification profile: a single
    device endpoint per user plus per-category preferences.
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    username = Column(String, nullable=True, index=True)
    is_admin = Column(Integer, default=0)  # 0 or 1
    created_at = Column(DateTime, default=datetime.utcnow)

    # Push notification profile
    push_enabled = Column(Integer, default=0)  # 0 or 1
    push_device_token = Column(String, nullable=True)
    push_platform = Column(String, nullable=True)  # ios, android
    push_endpoint_id = Column(String, nullable=True)
    push_preferences = Column(String, nullable=True)  # JSON, NULL = never set
    push_updated_at = Column(DateTime, nullable=True)

    def preferences_dict(self) -> dict | None:
        """Stored preferences, or None if the user never saved any."""
        if not self.push_preferences:
            return None
        return json.loads(self.push_preferences)
