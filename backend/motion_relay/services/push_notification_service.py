"""
Push Notification Service for Web Push notifications

Sends motion notifications to the single browser subscription stored in
the webpush settings with:
- VAPID authentication, initialized once per process on first dispatch
- Automatic removal of the subscription when the push service reports it
  as gone (HTTP 410); the VAPID key pair is kept
- No retries; other delivery errors are logged only
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pywebpush import webpush, WebPushException
from py_vapid import Vapid

from motion_relay.core.config import settings
from motion_relay.core.metrics import record_push_notification_sent, record_channel_dispatch
from motion_relay.schemas.settings import WebPushSettings
from motion_relay.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

DETECT_INFO = "detected a new movement on"
HTTP_GONE = 410


@dataclass
class NotificationResult:
    """Result of a notification delivery attempt."""
    success: bool
    error: Optional[str] = None
    status_code: Optional[int] = None
    subscription_removed: bool = False


class PushNotificationService:
    """
    Service for sending Web Push notifications.

    Holds the process-wide VAPID state. The keys are read from the settings
    on the first dispatch and reused afterwards.

    Usage:
        service = PushNotificationService(settings_service)
        result = await service.send_motion_notification(notification, webpush_settings)
    """

    def __init__(self, settings_service: SettingsService, vapid_claims_email: Optional[str] = None):
        """
        Args:
            settings_service: Settings store, used to clear a gone subscription
            vapid_claims_email: "mailto:" contact sent in the VAPID claims
        """
        self.settings_service = settings_service
        self.vapid_claims_email = vapid_claims_email or settings.VAPID_CLAIMS_EMAIL
        self._initialized = False
        self._vapid: Optional[Vapid] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _ensure_vapid(self, webpush_settings: WebPushSettings) -> Optional[Vapid]:
        """Load the VAPID private key once (lazy loading)."""
        if not self._initialized:
            self._initialized = True
            if not webpush_settings.priv_key:
                logger.error("Web-Push private key is not configured")
            else:
                try:
                    self._vapid = Vapid.from_string(private_key=webpush_settings.priv_key)
                except Exception as e:
                    logger.error(f"Web-Push private key could not be loaded: {e}")
                    self._vapid = None
        return self._vapid

    @staticmethod
    def build_payload(notification: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **notification,
            "detect_info": DETECT_INFO,
        }

    async def send_motion_notification(
        self,
        notification: Dict[str, Any],
        webpush_settings: WebPushSettings,
    ) -> Optional[NotificationResult]:
        """
        Send a motion notification to the stored subscription.

        Args:
            notification: Notification record
            webpush_settings: Webpush settings section (keys and subscription)

        Returns:
            NotificationResult, or None if no subscription is stored
        """
        vapid = self._ensure_vapid(webpush_settings)

        subscription = webpush_settings.subscription
        if not subscription:
            return None

        if vapid is None:
            record_channel_dispatch("push", "skipped")
            return NotificationResult(success=False, error="VAPID keys unavailable")

        logger.debug("Sending new webpush notification")

        payload_json = json.dumps(self.build_payload(notification))

        def send_push():
            return webpush(
                subscription_info=subscription,
                data=payload_json,
                vapid_claims={"sub": self.vapid_claims_email},
                vapid_private_key=vapid,
            )

        try:
            # webpush is synchronous
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, send_push)

        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None

            if status_code == HTTP_GONE:
                logger.debug("Web-Push Notification Grant changed! Removing subscription..")
                record_push_notification_sent("gone")
                record_channel_dispatch("push", "failure")
                try:
                    self.settings_service.clear_push_subscription()
                except Exception as clear_error:
                    logger.error(f"Failed to remove push subscription: {clear_error}", exc_info=True)
                    return NotificationResult(success=False, error=str(e), status_code=status_code)
                return NotificationResult(
                    success=False,
                    error=str(e),
                    status_code=status_code,
                    subscription_removed=True
                )

            logger.error(
                "An error occured during sending Web-Push Notification!",
                extra={"status_code": status_code, "error": str(e)}
            )
            record_push_notification_sent("failure")
            record_channel_dispatch("push", "failure")
            return NotificationResult(success=False, error=str(e), status_code=status_code)

        except Exception as e:
            logger.error(
                f"Unexpected error sending push notification: {e}",
                exc_info=True
            )
            record_push_notification_sent("failure")
            record_channel_dispatch("push", "failure")
            return NotificationResult(success=False, error=str(e))

        record_push_notification_sent("success")
        record_channel_dispatch("push", "success")
        return NotificationResult(success=True)
