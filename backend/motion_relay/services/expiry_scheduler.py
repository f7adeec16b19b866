"""
Expiry Scheduler

Removes notifications and recordings once their TTL has passed, using
one-shot APScheduler jobs.

Architecture:
    CorrelationCoordinator
        │
        ├── schedule_notification_expiry(id, ttl) ──► DateTrigger(now + ttl)
        │                                                 └── remove notification
        └── schedule_recording_expiry(id, ttl) ─────► DateTrigger(now + ttl)
                                                          └── remove recording + media files

Timers are in-memory; restore() re-arms them from the stored records after
a restart.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from motion_relay.services.record_service import RecordRepository, parse_ttl
from motion_relay.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

NOTIFICATION_JOB_PREFIX = "notification_expiry_"
RECORDING_JOB_PREFIX = "recording_expiry_"


class ExpiryScheduler:
    """Schedules the deletion of notifications and recordings."""

    def __init__(
        self,
        repository: RecordRepository,
        settings_service: SettingsService,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.repository = repository
        self.settings_service = settings_service
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._running = False

        logger.info(
            "ExpiryScheduler initialized",
            extra={"event_type": "expiry_scheduler_init"}
        )

    def start(self) -> None:
        """Start the scheduler if not already running. Needs a running event loop."""
        if not self._running:
            self._scheduler.start()
            self._running = True
            logger.info(
                "ExpiryScheduler started",
                extra={"event_type": "expiry_scheduler_started"}
            )

    def stop(self) -> None:
        """Stop the scheduler; pending expiries are re-armed by restore() on next start."""
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info(
                "ExpiryScheduler stopped",
                extra={"event_type": "expiry_scheduler_stopped"}
            )

    def _add_job(self, job_id: str, func, ttl_seconds: float, args: list) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            args=args,
            replace_existing=True,
            misfire_grace_time=None,  # Always run late expiries
        )

    def schedule_notification_expiry(self, notification_id: str, ttl_seconds: float) -> None:
        """Delete the notification after ttl_seconds."""
        self._add_job(
            f"{NOTIFICATION_JOB_PREFIX}{notification_id}",
            self._expire_notification,
            ttl_seconds,
            [notification_id],
        )
        logger.debug(
            f"Notification {notification_id} expires in {ttl_seconds}s",
            extra={"notification_id": notification_id, "ttl_seconds": ttl_seconds}
        )

    def schedule_recording_expiry(self, recording_id: str, ttl_seconds: float) -> None:
        """Delete the recording and its media files after ttl_seconds."""
        self._add_job(
            f"{RECORDING_JOB_PREFIX}{recording_id}",
            self._expire_recording,
            ttl_seconds,
            [recording_id],
        )
        logger.debug(
            f"Recording {recording_id} expires in {ttl_seconds}s",
            extra={"recording_id": recording_id, "ttl_seconds": ttl_seconds}
        )

    async def _expire_notification(self, notification_id: str) -> None:
        try:
            self.repository.remove_notification(notification_id)
        except Exception as e:
            # Log but don't propagate - scheduler should continue running
            logger.error(
                f"Failed to expire notification {notification_id}: {e}",
                exc_info=True
            )

    async def _expire_recording(self, recording_id: str) -> None:
        try:
            path = self.settings_service.get_section("recordings").path
            self.repository.remove_recording(recording_id, path)
        except Exception as e:
            logger.error(
                f"Failed to expire recording {recording_id}: {e}",
                exc_info=True
            )

    async def restore(self, now: Optional[float] = None) -> Dict[str, int]:
        """
        Re-arm expiry timers for stored records.

        Records whose TTL already passed are removed right away. Does nothing
        for a record type whose expiry is disabled.

        Args:
            now: Optional epoch seconds for testing; defaults to current time

        Returns:
            Dict with "scheduled" and "removed" counts
        """
        now = time.time() if now is None else now
        settings = self.settings_service.get_settings()
        stats = {"scheduled": 0, "removed": 0}

        notification_ttl = parse_ttl(settings.notifications.clear_timer)
        if notification_ttl:
            for notification in self.repository.list_notifications():
                remaining = notification["timestamp"] + notification_ttl - now
                if remaining <= 0:
                    self.repository.remove_notification(notification["id"])
                    stats["removed"] += 1
                else:
                    self.schedule_notification_expiry(notification["id"], remaining)
                    stats["scheduled"] += 1

        recording_ttl = parse_ttl(settings.recordings.remove_after)
        if recording_ttl:
            for recording in self.repository.list_recordings():
                remaining = recording["timestamp"] + recording_ttl - now
                if remaining <= 0:
                    self.repository.remove_recording(recording["id"], settings.recordings.path)
                    stats["removed"] += 1
                else:
                    self.schedule_recording_expiry(recording["id"], remaining)
                    stats["scheduled"] += 1

        logger.info(
            f"Expiry timers restored: {stats['scheduled']} scheduled, {stats['removed']} removed",
            extra=stats
        )
        return stats

    def get_job(self, job_id: str):
        return self._scheduler.get_job(job_id)
