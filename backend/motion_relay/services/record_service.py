"""
Notification and Recording Records

Correlation & expiry coordination for admitted motion events:

    create_motion_info()        correlation token + time + recording session grant
    handle_notification()       store Notification, schedule its expiry
    handle_recording()          store Recording, schedule its expiry

Notification and Recording share the token as their id and expire
independently, each after its own TTL.
"""
import logging
import os
import re
import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from motion_relay.core.database import get_db_session
from motion_relay.models.notification import Notification
from motion_relay.models.recording import Recording
from motion_relay.schemas.motion import CameraConfig, CorrelationContext
from motion_relay.schemas.settings import ControllerSettings
from motion_relay.services.media_recorder import media_paths
from motion_relay.services.session_registry import RecordingSessionRegistry

logger = logging.getLogger(__name__)

# 8 random bytes -> 16 hex characters
CORRELATION_TOKEN_BYTES = 8
TIME_FORMAT = "%d.%m.%Y, %H:%M:%S"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_ttl(value: Any) -> Optional[int]:
    """
    Parse a configured expiry time.

    Takes the leading integer of the value ("3600", 3600 and "3600s" all give
    3600). Returns None when expiry is disabled: empty, 0, negative or
    non-numeric values.
    """
    if value is None or isinstance(value, bool):
        return None

    match = _LEADING_INT.match(str(value))
    if not match:
        return None

    ttl = int(match.group(1))
    return ttl if ttl > 0 else None


class ExpiryScheduling(Protocol):
    """Contract of the expiry scheduler used by the coordinator."""

    def schedule_notification_expiry(self, notification_id: str, ttl_seconds: int) -> None: ...

    def schedule_recording_expiry(self, recording_id: str, ttl_seconds: int) -> None: ...


class RecordRepository:
    """Database access for notifications and recordings."""

    def __init__(self, session_factory=None):
        """
        Args:
            session_factory: Optional SQLAlchemy session factory (for testing).
                             Defaults to SessionLocal from motion_relay.core.database.
        """
        self.session_factory = session_factory

    def add_notification(self, **fields) -> Dict[str, Any]:
        with get_db_session(self.session_factory) as db:
            notification = Notification(**fields)
            db.add(notification)
            db.commit()
            db.refresh(notification)
            return notification.to_dict()

    def add_recording(self, **fields) -> Dict[str, Any]:
        with get_db_session(self.session_factory) as db:
            recording = Recording(**fields)
            db.add(recording)
            db.commit()
            db.refresh(recording)
            return recording.to_dict()

    def get_notification(self, notification_id: str) -> Optional[Dict[str, Any]]:
        with get_db_session(self.session_factory) as db:
            notification = db.query(Notification).filter(Notification.id == notification_id).first()
            return notification.to_dict() if notification else None

    def get_recording(self, recording_id: str) -> Optional[Dict[str, Any]]:
        with get_db_session(self.session_factory) as db:
            recording = db.query(Recording).filter(Recording.id == recording_id).first()
            return recording.to_dict() if recording else None

    def list_notifications(self) -> List[Dict[str, Any]]:
        with get_db_session(self.session_factory) as db:
            return [n.to_dict() for n in db.query(Notification).order_by(Notification.timestamp).all()]

    def list_recordings(self) -> List[Dict[str, Any]]:
        with get_db_session(self.session_factory) as db:
            return [r.to_dict() for r in db.query(Recording).order_by(Recording.timestamp).all()]

    def remove_notification(self, notification_id: str) -> bool:
        """Delete a notification. Returns False if it no longer exists."""
        with get_db_session(self.session_factory) as db:
            deleted = db.query(Notification).filter(Notification.id == notification_id).delete(
                synchronize_session=False
            )
            db.commit()

        if deleted:
            logger.debug(f"Notification {notification_id} removed")
        return bool(deleted)

    def remove_recording(self, recording_id: str, path: Optional[str] = None) -> bool:
        """
        Delete a recording and, if a recording path is given, its media files.

        Missing files are skipped; file errors are logged and do not keep the
        database record alive.

        Returns:
            False if the record no longer exists
        """
        with get_db_session(self.session_factory) as db:
            deleted = db.query(Recording).filter(Recording.id == recording_id).delete(
                synchronize_session=False
            )
            db.commit()

        if path:
            self._delete_media(recording_id, path)

        if deleted:
            logger.debug(f"Recording {recording_id} removed")
        return bool(deleted)

    def _delete_media(self, recording_id: str, path: str) -> int:
        removed = 0
        for file_path in media_paths(path, recording_id):
            try:
                if os.path.exists(file_path):
                    os.remove(file_path)
                    removed += 1
                    logger.debug(f"Deleted media file: {file_path}")
            except OSError as e:
                logger.warning(
                    f"Failed to delete media file {file_path}: {e}",
                    extra={"file_path": file_path, "error": str(e)}
                )
        return removed


class CorrelationCoordinator:
    """
    Builds the correlation context of an admitted event and creates the
    paired notification and recording records.
    """

    def __init__(
        self,
        repository: RecordRepository,
        session_registry: RecordingSessionRegistry,
        scheduler: Optional[ExpiryScheduling] = None,
    ):
        self.repository = repository
        self.session_registry = session_registry
        self.scheduler = scheduler

    def create_motion_info(self, camera: CameraConfig, settings: ControllerSettings) -> CorrelationContext:
        """
        Create the correlation context for an event.

        A recording session is only requested when recordings are enabled;
        the grant decides whether a video is produced.
        """
        record = (
            self.session_registry.request_session(camera.name)
            if settings.recordings.active
            else False
        )

        now = datetime.now()

        return CorrelationContext(
            hash=secrets.token_hex(CORRELATION_TOKEN_BYTES),
            time=now.strftime(TIME_FORMAT),
            timestamp=int(time.time()),
            record=record,
        )

    def handle_notification(
        self,
        camera: CameraConfig,
        event_type: str,
        info: CorrelationContext,
        labels: Optional[List[str]],
        settings: ControllerSettings,
    ) -> Dict[str, Any]:
        """Store the notification and schedule its expiry."""
        notification = self.repository.add_notification(
            id=info.hash,
            camera=camera.name,
            type=event_type,
            time=info.time,
            timestamp=info.timestamp,
            labels=labels,
            recording=info.record,
        )

        ttl = parse_ttl(settings.notifications.clear_timer)
        if ttl and self.scheduler is not None:
            self.scheduler.schedule_notification_expiry(notification["id"], ttl)

        return notification

    def handle_recording(
        self,
        camera: CameraConfig,
        event_type: str,
        info: CorrelationContext,
        labels: Optional[List[str]],
        settings: ControllerSettings,
    ) -> Dict[str, Any]:
        """Store the recording and schedule its expiry."""
        recording = self.repository.add_recording(
            id=info.hash,
            camera=camera.name,
            type=event_type,
            time=info.time,
            timestamp=info.timestamp,
            labels=labels,
            recording_type=settings.recordings.type,
            recording=info.record,
        )

        ttl = parse_ttl(settings.recordings.remove_after)
        if ttl and self.scheduler is not None:
            self.scheduler.schedule_recording_expiry(recording["id"], ttl)

        return recording
