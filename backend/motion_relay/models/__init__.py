"""SQLAlchemy ORM models"""
from motion_relay.models.system_setting import SystemSetting
from motion_relay.models.notification import Notification
from motion_relay.models.recording import Recording

__all__ = [
    "SystemSetting",
    "Notification",
    "Recording",
]
