"""Notification SQLAlchemy ORM model for motion notifications"""
from sqlalchemy import Column, String, Integer, Boolean, JSON, Index
from motion_relay.core.database import Base


class Notification(Base):
    """
    Motion notification record.

    Created once per admitted motion/doorbell event and shared read-only by
    every channel. Its id is the correlation token, which is also the id of
    the paired Recording and the stem of the media files on disk.

    Attributes:
        id: Correlation token (hex)
        camera: Camera display name
        type: Event type, "motion" or "doorbell"
        time: Human readable time (DD.MM.YYYY, HH:mm:ss)
        timestamp: Epoch seconds
        labels: Detected labels, None when detection did not run
        recording: Whether a recording session was granted for the event
    """

    __tablename__ = "notifications"

    id = Column(String(32), primary_key=True)
    camera = Column(String(200), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    time = Column(String(32), nullable=False)
    timestamp = Column(Integer, nullable=False)
    labels = Column(JSON, nullable=True)
    recording = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('idx_notifications_timestamp', 'timestamp'),
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, camera={self.camera}, type={self.type})>"

    def to_dict(self):
        """Convert notification to the payload sent to every channel."""
        return {
            "id": self.id,
            "camera": self.camera,
            "type": self.type,
            "time": self.time,
            "timestamp": self.timestamp,
            "labels": list(self.labels) if self.labels is not None else None,
            "recording": bool(self.recording),
        }
