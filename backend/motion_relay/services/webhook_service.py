"""
Webhook Service for Motion Notifications

This module implements per-camera webhook delivery with:
- Async HTTP POST requests using httpx
- URL syntax validation (malformed endpoints are skipped with a warning)
- One attempt per event; failures are logged and never raised

Usage:
    service = WebhookService()
    await service.send_camera_webhook(camera_name, notification, webhook_settings)
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from motion_relay.core.config import settings
from motion_relay.core.metrics import record_channel_dispatch
from motion_relay.schemas.settings import WebhookSettings

logger = logging.getLogger(__name__)

USER_AGENT = "MotionRelay/1.0"
MAX_RESPONSE_BODY_LENGTH = 200  # Truncate response for logging


@dataclass
class WebhookResult:
    """Result of a webhook execution attempt."""
    success: bool
    status_code: int
    response_body: str
    response_time_ms: int
    error_message: Optional[str] = None


class WebhookValidationError(Exception):
    """Raised when webhook URL validation fails."""
    pass


class WebhookService:
    """
    Webhook delivery service.

    Posts the full notification record to the endpoint configured for the
    camera that triggered it.
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize WebhookService.

        Args:
            http_client: Optional httpx AsyncClient (created per request if not provided)
            timeout: Request timeout in seconds (default from settings)
        """
        self.http_client = http_client
        self.timeout = timeout if timeout is not None else settings.WEBHOOK_TIMEOUT_SECONDS

    def validate_url(self, url: str) -> None:
        """
        Validate webhook URL syntax.

        Private and local addresses are allowed; webhooks usually point at
        home automation hubs on the local network.

        Raises:
            WebhookValidationError: If URL is malformed
        """
        try:
            parsed = urlparse(url)
        except Exception as e:
            raise WebhookValidationError(f"Invalid URL format: {e}")

        if parsed.scheme not in ("http", "https"):
            raise WebhookValidationError(f"Unsupported URL scheme '{parsed.scheme}', only http and https are supported")

        try:
            hostname = parsed.hostname
            parsed.port  # Raises ValueError on a malformed port
        except ValueError as e:
            raise WebhookValidationError(f"Invalid URL format: {e}")

        if not hostname:
            raise WebhookValidationError("URL must have a hostname")

    async def send_webhook(self, url: str, payload: Dict[str, Any]) -> WebhookResult:
        """
        Send a single HTTP POST request with a JSON payload.

        Returns:
            WebhookResult; transport errors are reported, not raised
        """
        client = self.http_client or httpx.AsyncClient()
        should_close_client = self.http_client is None
        start_time = time.time()

        try:
            response = await client.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
                timeout=self.timeout
            )

            response_time_ms = int((time.time() - start_time) * 1000)
            response_body = response.text[:MAX_RESPONSE_BODY_LENGTH]
            success = 200 <= response.status_code < 300

            return WebhookResult(
                success=success,
                status_code=response.status_code,
                response_body=response_body,
                response_time_ms=response_time_ms,
                error_message=None if success else f"Failed with status {response.status_code}"
            )

        except httpx.TimeoutException:
            response_time_ms = int((time.time() - start_time) * 1000)
            return WebhookResult(False, 0, "", response_time_ms, "Request timeout")

        except httpx.ConnectError as e:
            response_time_ms = int((time.time() - start_time) * 1000)
            return WebhookResult(False, 0, "", response_time_ms, f"Connection error: {str(e)}")

        except httpx.RequestError as e:
            response_time_ms = int((time.time() - start_time) * 1000)
            return WebhookResult(False, 0, "", response_time_ms, f"Request error: {str(e)}")

        except Exception as e:
            response_time_ms = int((time.time() - start_time) * 1000)
            return WebhookResult(False, 0, "", response_time_ms, f"Unexpected error: {str(e)}")

        finally:
            if should_close_client:
                await client.aclose()

    async def send_camera_webhook(
        self,
        camera_name: str,
        notification: Dict[str, Any],
        webhook_settings: WebhookSettings,
    ) -> Optional[WebhookResult]:
        """
        Trigger the webhook configured for a camera.

        Args:
            camera_name: Camera display name
            notification: Notification record sent as JSON body
            webhook_settings: Webhook settings section

        Returns:
            WebhookResult if a request was made, None if no webhook is
            configured or the endpoint is malformed
        """
        if not webhook_settings.active:
            return None

        camera_settings = webhook_settings.cameras.get(camera_name)
        endpoint = (camera_settings.endpoint or "").strip() if camera_settings else ""
        if not endpoint:
            return None

        try:
            self.validate_url(endpoint)
        except WebhookValidationError as e:
            logger.warning(
                f"The given endpoint can not be used! Please check your endpoint! ({e})",
                extra={"endpoint": endpoint}
            )
            record_channel_dispatch("webhook", "skipped")
            return None

        logger.debug(f"Trigger Webhook endpoint {endpoint}")

        result = await self.send_webhook(endpoint, notification)

        if result.success:
            logger.debug(
                f"Payload was sent successfully to {endpoint}",
                extra={"status_code": result.status_code, "response_time_ms": result.response_time_ms}
            )
            record_channel_dispatch("webhook", "success")
        else:
            logger.error(
                f"Error: {result.error_message}",
                extra={"endpoint": endpoint, "status_code": result.status_code}
            )
            record_channel_dispatch("webhook", "failure")

        return result
