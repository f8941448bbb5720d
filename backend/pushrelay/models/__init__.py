"""Database models."""
from .user import User, DEFAULT_PREFERENCES
from .device_registration import DeviceRegistration

__all__ = ["User", "DeviceRegistration", "DEFAULT_PREFERENCES"]
