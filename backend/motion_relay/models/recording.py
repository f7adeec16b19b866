"""Recording SQLAlchemy ORM model"""
from sqlalchemy import Column, String, Integer, Boolean, JSON, Index
from motion_relay.core.database import Base


class Recording(Base):
    """
    Recording record paired with a Notification through the shared id.

    Attributes:
        id: Correlation token shared with the notification
        camera: Camera display name
        type: Event type, "motion" or "doorbell"
        time: Human readable time
        timestamp: Epoch seconds
        labels: Detected labels copied from the notification
        recording_type: Configured output type, "Snapshot" or "Video"
        recording: Whether a video is produced for this event
    """

    __tablename__ = "recordings"

    id = Column(String(32), primary_key=True)
    camera = Column(String(200), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    time = Column(String(32), nullable=False)
    timestamp = Column(Integer, nullable=False)
    labels = Column(JSON, nullable=True)
    recording_type = Column(String(20), nullable=False, default="Snapshot")
    recording = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index('idx_recordings_timestamp', 'timestamp'),
    )

    def __repr__(self):
        return f"<Recording(id={self.id}, camera={self.camera}, recording_type={self.recording_type})>"

    def to_dict(self):
        return {
            "id": self.id,
            "camera": self.camera,
            "type": self.type,
            "time": self.time,
            "timestamp": self.timestamp,
            "labels": list(self.labels) if self.labels is not None else None,
            "recording_type": self.recording_type,
            "recording": bool(self.recording),
        }
