"""
Tests for Webhook Service

Tests cover:
- URL validation
- Per-camera endpoint selection
- Single delivery attempt
- Error handling (failures are reported, never raised)
"""
import json
import logging

import httpx
import pytest

from motion_relay.schemas.settings import WebhookSettings
from motion_relay.services.webhook_service import (
    WebhookService,
    WebhookValidationError,
)
from tests.conftest import make_notification


def _webhook_settings(endpoint, active=True, camera="Front Door"):
    return WebhookSettings.model_validate({
        "active": active,
        "cameras": {camera: {"endpoint": endpoint}},
    })


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestURLValidation:
    """Tests for webhook URL validation."""

    @pytest.mark.parametrize("url", [
        "https://example.com/webhook",
        "http://192.168.1.20:8123/api/webhook/motion",
        "http://localhost:1880/motion",
        "http://homeassistant.local/api/webhook/abc?x=1",
    ])
    def test_valid_urls(self, url):
        WebhookService().validate_url(url)

    @pytest.mark.parametrize("url", [
        "not a url",
        "ftp://example.com/file",
        "http://",
        "http://example.com:notaport/path",
        "example.com/webhook",
    ])
    def test_invalid_urls(self, url):
        with pytest.raises(WebhookValidationError):
            WebhookService().validate_url(url)


class TestSendCameraWebhook:

    @pytest.mark.asyncio
    async def test_posts_notification_as_json(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text="ok")

        notification = make_notification(labels=["Person"])

        async with _client(handler) as client:
            result = await WebhookService(http_client=client).send_camera_webhook(
                "Front Door", notification, _webhook_settings("http://192.168.1.20/hook")
            )

        assert result.success is True
        assert result.status_code == 200
        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "http://192.168.1.20/hook"
        assert json.loads(requests[0].content) == notification

    @pytest.mark.asyncio
    async def test_inactive_sends_nothing(self):
        handler_calls = []

        async with _client(lambda r: handler_calls.append(r) or httpx.Response(200)) as client:
            result = await WebhookService(http_client=client).send_camera_webhook(
                "Front Door", make_notification(), _webhook_settings("http://hub/hook", active=False)
            )

        assert result is None
        assert handler_calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("endpoint", [None, "", "   "])
    async def test_blank_endpoint_sends_nothing(self, endpoint):
        handler_calls = []

        async with _client(lambda r: handler_calls.append(r) or httpx.Response(200)) as client:
            result = await WebhookService(http_client=client).send_camera_webhook(
                "Front Door", make_notification(), _webhook_settings(endpoint)
            )

        assert result is None
        assert handler_calls == []

    @pytest.mark.asyncio
    async def test_other_camera_sends_nothing(self):
        service = WebhookService()

        result = await service.send_camera_webhook(
            "Front Door", make_notification(), _webhook_settings("http://hub/hook", camera="Garage")
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_malformed_endpoint_logs_warning(self, caplog):
        handler_calls = []

        async with _client(lambda r: handler_calls.append(r) or httpx.Response(200)) as client:
            with caplog.at_level(logging.WARNING, logger="motion_relay.services.webhook_service"):
                result = await WebhookService(http_client=client).send_camera_webhook(
                    "Front Door", make_notification(), _webhook_settings("hub/hook")
                )

        assert result is None
        assert handler_calls == []
        assert "can not be used" in caplog.text

    @pytest.mark.asyncio
    async def test_unsupported_scheme_is_named_in_warning(self, caplog):
        handler_calls = []

        async with _client(lambda r: handler_calls.append(r) or httpx.Response(200)) as client:
            with caplog.at_level(logging.WARNING, logger="motion_relay.services.webhook_service"):
                result = await WebhookService(http_client=client).send_camera_webhook(
                    "Front Door", make_notification(), _webhook_settings("ftp://hub.local/hook")
                )

        assert result is None
        assert handler_calls == []
        assert "Unsupported URL scheme 'ftp'" in caplog.text

    @pytest.mark.asyncio
    async def test_error_status_is_reported_not_raised(self, caplog):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(500, text="boom")

        async with _client(handler) as client:
            with caplog.at_level(logging.ERROR, logger="motion_relay.services.webhook_service"):
                result = await WebhookService(http_client=client).send_camera_webhook(
                    "Front Door", make_notification(), _webhook_settings("http://hub/hook")
                )

        assert result.success is False
        assert result.status_code == 500
        assert len(attempts) == 1
        assert "Failed with status 500" in caplog.text

    @pytest.mark.asyncio
    async def test_connection_error_is_reported_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            result = await WebhookService(http_client=client).send_camera_webhook(
                "Front Door", make_notification(), _webhook_settings("http://hub/hook")
            )

        assert result.success is False
        assert result.status_code == 0
        assert "Connection error" in result.error_message

    @pytest.mark.asyncio
    async def test_timeout_is_reported_not_raised(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            result = await WebhookService(http_client=client).send_webhook(
                "http://hub/hook", make_notification()
            )

        assert result.success is False
        assert result.error_message == "Request timeout"
