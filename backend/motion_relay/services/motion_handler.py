"""
Motion Handler

Entry point of the motion pipeline. Decides whether a camera trigger is
notified, which records are created, what is stored and through which
channels operators hear about it.

Architecture:
    handle_motion(camera, active, event_type)
        │
        ├── Motion gate (home presence, exclusion list)
        ├── Snapshot capture (media recorder)
        ├── Detection filter (optional label detection)
        ├── Correlation coordinator (token, session grant, records, expiry)
        └── Dispatch
              ├── webhook                    detached, always first
              ├── record granted:
              │     telegram preview (raw buffer) ► snapshot (intermediate)
              │     ► video ► release session ► broadcast ► log ► push
              └── no recording:
                    snapshot (final) ► broadcast ► log ► push ► telegram

The telegram step sits at opposite ends of the two branches: with a
recording the preview goes out before storage, without one the message
goes out last, after the final snapshot exists.

Channel sends run as detached tasks owned by a DispatchContext; their
failures are logged and never reach the caller. Capture and persistence
errors propagate.
"""
import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Set

from motion_relay.core.logging_config import set_camera, clear_camera
from motion_relay.core.metrics import record_motion_event, record_channel_dispatch
from motion_relay.schemas.motion import CameraConfig, CorrelationContext, MotionEvent, MotionResult
from motion_relay.schemas.settings import ControllerSettings
from motion_relay.services.detection_filter import BaseLabelDetector, DetectionFilter
from motion_relay.services.expiry_scheduler import ExpiryScheduler
from motion_relay.services.media_recorder import BaseMediaRecorder
from motion_relay.services.motion_gate import check_motion_gate
from motion_relay.services.push_notification_service import PushNotificationService
from motion_relay.services.record_service import CorrelationCoordinator, RecordRepository
from motion_relay.services.session_registry import RecordingSessionRegistry
from motion_relay.services.settings_service import SettingsService
from motion_relay.services.telegram_service import TelegramService
from motion_relay.services.webhook_service import WebhookService
from motion_relay.services.websocket_manager import get_websocket_manager

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"
REASON_LABEL_REJECTED = "label_rejected"


class Broadcaster(Protocol):
    """Realtime broadcast collaborator."""

    async def broadcast(self, event: str, payload: Any) -> int: ...

    def store_notification(self, notification: Dict[str, Any]) -> None: ...


class DispatchContext:
    """
    Process-wide channel state owned by one MotionHandler.

    Holds the channel adapters (and with them the cached Telegram bot and
    the push VAPID state) plus the detached dispatch tasks. Every task gets
    a done-callback that logs an escaped exception, so a failing channel is
    visible without affecting the pipeline that started it.
    """

    def __init__(
        self,
        webhook: WebhookService,
        telegram: TelegramService,
        push: PushNotificationService,
    ):
        self.webhook = webhook
        self.telegram = telegram
        self.push = push
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable[Any], channel: str) -> asyncio.Task:
        """Run a channel send in the background."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._on_done, channel))
        return task

    def _on_done(self, channel: str, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"{channel} dispatch was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"{channel} dispatch failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
                extra={"channel": channel}
            )
            record_channel_dispatch(channel, "failure")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until all detached dispatches (including ones they start) finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Finish pending dispatches and stop the cached Telegram bot."""
        await self.drain()
        await self.telegram.close()


class MotionHandler:
    """
    Orchestrates the motion pipeline for all cameras.

    Every call to handle_motion is independent; calls for different cameras
    (or repeated calls for one camera) may run concurrently. The recording
    session registry keeps at most one video per camera in flight.
    """

    def __init__(
        self,
        settings_service: SettingsService,
        media_recorder: BaseMediaRecorder,
        session_registry: RecordingSessionRegistry,
        coordinator: CorrelationCoordinator,
        broadcaster: Broadcaster,
        context: DispatchContext,
        detector: Optional[BaseLabelDetector] = None,
        scheduler: Optional[ExpiryScheduler] = None,
    ):
        self.settings_service = settings_service
        self.media_recorder = media_recorder
        self.session_registry = session_registry
        self.coordinator = coordinator
        self.broadcaster = broadcaster
        self.context = context
        self.detection_filter = DetectionFilter(detector)
        self.scheduler = scheduler

    @classmethod
    def create(
        cls,
        settings_service: SettingsService,
        media_recorder: BaseMediaRecorder,
        broadcaster: Optional[Broadcaster] = None,
        session_factory=None,
        detector_factory: Optional[Callable[[], BaseLabelDetector]] = None,
        webhook_service: Optional[WebhookService] = None,
        telegram_service: Optional[TelegramService] = None,
        push_service: Optional[PushNotificationService] = None,
    ) -> "MotionHandler":
        """
        Wire up a handler with its collaborators.

        A detector factory that fails (e.g. bad credentials) disables label
        detection instead of failing startup.

        Args:
            settings_service: Settings store
            media_recorder: Capture/persistence engine
            broadcaster: Realtime broadcaster (default: global WebSocketManager)
            session_factory: Optional SQLAlchemy session factory (for testing)
            detector_factory: Creates the label detection backend
            webhook_service: Optional webhook channel (for testing)
            telegram_service: Optional messaging channel (for testing)
            push_service: Optional push channel (for testing)
        """
        detector = None
        if detector_factory is not None:
            try:
                detector = detector_factory()
            except Exception as e:
                logger.error(f"Bad detection backend credentials! Label detection disabled: {e}")

        session_registry = RecordingSessionRegistry()
        repository = RecordRepository(session_factory)
        scheduler = ExpiryScheduler(repository, settings_service)
        coordinator = CorrelationCoordinator(repository, session_registry, scheduler)

        if telegram_service is None:
            telegram = settings_service.get_section("telegram")
            telegram_service = TelegramService(credentials=(telegram.token, telegram.chat_id))

        context = DispatchContext(
            webhook=webhook_service or WebhookService(),
            telegram=telegram_service,
            push=push_service or PushNotificationService(settings_service),
        )

        return cls(
            settings_service=settings_service,
            media_recorder=media_recorder,
            session_registry=session_registry,
            coordinator=coordinator,
            broadcaster=broadcaster or get_websocket_manager(),
            context=context,
            detector=detector,
            scheduler=scheduler,
        )

    async def start(self) -> None:
        """Start the expiry scheduler and re-arm timers of stored records."""
        if self.scheduler is not None:
            self.scheduler.start()
            await self.scheduler.restore()

    async def shutdown(self) -> None:
        """Finish pending dispatches, stop the Telegram bot and the scheduler."""
        await self.context.aclose()
        if self.scheduler is not None:
            self.scheduler.stop()

    async def handle_event(self, event: MotionEvent, camera: CameraConfig) -> MotionResult:
        """Handle a MotionEvent for the given camera."""
        if event.camera_name != camera.name:
            raise ValueError(f"Event for {event.camera_name} handed to camera {camera.name}")
        return await self.handle_motion(camera, event.active, event.event_type)

    async def handle_motion(
        self,
        camera: CameraConfig,
        active: bool,
        event_type: str = "motion",
    ) -> MotionResult:
        """
        Run the motion pipeline for one trigger.

        Args:
            camera: Camera that triggered
            active: Motion state reported by the camera
            event_type: "motion" or "doorbell"

        Returns:
            MotionResult

        Raises:
            Exception: Capture and persistence errors from the media recorder
        """
        token = set_camera(camera.name)
        try:
            return await self._handle_motion(camera, active, event_type)
        except Exception:
            record_motion_event(camera.name, "failed")
            raise
        finally:
            clear_camera(token)

    async def _handle_motion(self, camera: CameraConfig, active: bool, event_type: str) -> MotionResult:
        settings = self.settings_service.get_settings()

        decision = check_motion_gate(
            active,
            camera.name,
            settings.general.at_home,
            settings.general.exclude,
        )
        if not decision.admitted:
            record_motion_event(camera.name, decision.reason)
            return MotionResult(admitted=False, reason=decision.reason)

        logger.debug(f"New {'Motion' if event_type == 'motion' else 'Doorbell'} Alert")

        image = await self.media_recorder.get_snapshot(camera.video_config)

        detection = await self.detection_filter.evaluate(
            image,
            camera.detection.labels,
            camera.detection.confidence,
            configured=camera.detection.active,
        )
        if not detection.passed:
            logger.debug("Skip storing movement. Configured label not detected.")
            record_motion_event(camera.name, REASON_LABEL_REJECTED)
            return MotionResult(admitted=False, reason=REASON_LABEL_REJECTED)

        info = self.coordinator.create_motion_info(camera, settings)

        try:
            notification = self.coordinator.handle_notification(
                camera, event_type, info, detection.detected_labels, settings
            )
            recording = self.coordinator.handle_recording(
                camera, event_type, info, notification["labels"], settings
            )
        except Exception:
            if info.record:
                self.session_registry.close_session(camera.name)
            raise

        await self.dispatch(camera, notification, recording, info, image, settings)

        record_motion_event(camera.name, "recorded" if info.record else "snapshot")
        return MotionResult(admitted=True, notification=notification, recorded=info.record)

    async def dispatch(
        self,
        camera: CameraConfig,
        notification: Dict[str, Any],
        recording: Dict[str, Any],
        info: CorrelationContext,
        image: bytes,
        settings: ControllerSettings,
    ) -> None:
        """
        Store media and fan out to the notification channels.

        Args:
            camera: Camera that triggered
            notification: Notification record
            recording: Recording record
            info: Correlation context; info.record selects the branch
            image: Raw snapshot buffer
            settings: Settings snapshot for this event
        """
        ctx = self.context
        path = settings.recordings.path

        ctx.spawn(ctx.webhook.send_camera_webhook(camera.name, notification, settings.webhook), "webhook")

        if info.record:
            # Preview with the raw snapshot before the video exists
            ctx.spawn(
                ctx.telegram.dispatch(camera.name, notification, True, settings, image=image),
                "telegram"
            )

            try:
                await self.media_recorder.store_snapshot(camera, image, recording, path, True)
                await self.media_recorder.store_video(camera, recording, path, settings.recordings.timer)
            finally:
                self.session_registry.close_session(camera.name)

            await self._publish(notification, settings)

        else:
            await self.media_recorder.store_snapshot(camera, image, recording, path, False)

            await self._publish(notification, settings)

            ctx.spawn(
                ctx.telegram.dispatch(camera.name, notification, False, settings),
                "telegram"
            )

    async def _publish(self, notification: Dict[str, Any], settings: ControllerSettings) -> None:
        """Realtime broadcast, notification log and push."""
        try:
            await self.broadcaster.broadcast(NOTIFICATION_EVENT, notification)
        except Exception as e:
            logger.error(f"Realtime broadcast failed: {e}", exc_info=True)
            record_channel_dispatch("realtime", "failure")

        try:
            self.broadcaster.store_notification(notification)
        except Exception as e:
            logger.error(f"Failed to store notification in log: {e}", exc_info=True)

        self.context.spawn(
            self.context.push.send_motion_notification(notification, settings.webpush),
            "push"
        )
