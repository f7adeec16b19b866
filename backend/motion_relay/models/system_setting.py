"""System settings model for configuration key-value storage"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, DateTime

from motion_relay.core.database import Base


class SystemSetting(Base):
    """
    System configuration settings stored as key-value pairs.

    Each settings section (general, recordings, notifications, webhook,
    telegram, webpush) is stored as one JSON document under its own key.
    """
    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True, nullable=False)
    value = Column(Text, nullable=False)  # JSON document
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self):
        # Don't expose value in repr, sections hold credentials
        return f"<SystemSetting(key='{self.key}')>"
