"""
Tests for PushNotificationService

Tests cover:
- One-time VAPID initialization
- Payload format
- Subscription removal on 410 Gone (keys kept)
- Error handling without raising
"""
import json
from unittest.mock import MagicMock, patch

import pytest
from pywebpush import WebPushException

from motion_relay.schemas.settings import WebPushSettings
from motion_relay.services.push_notification_service import (
    DETECT_INFO,
    PushNotificationService,
)
from tests.conftest import make_notification

SUBSCRIPTION = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM", "auth": "tBHItJI5svbpez7KI4CCXg"},
}


def _webpush_settings(subscription=SUBSCRIPTION):
    return WebPushSettings(pub_key="public", priv_key="private", subscription=subscription)


def _gone(status_code=410):
    response = MagicMock()
    response.status_code = status_code
    return WebPushException("Push failed", response=response)


@pytest.fixture
def mock_vapid():
    with patch("motion_relay.services.push_notification_service.Vapid") as vapid:
        yield vapid


@pytest.fixture
def mock_webpush():
    with patch("motion_relay.services.push_notification_service.webpush") as webpush:
        yield webpush


class TestSendMotionNotification:

    @pytest.mark.asyncio
    async def test_sends_payload_with_detect_info(self, mock_vapid, mock_webpush):
        service = PushNotificationService(MagicMock(), vapid_claims_email="mailto:ops@example.com")
        notification = make_notification(labels=["Person"])

        result = await service.send_motion_notification(notification, _webpush_settings())

        assert result.success is True
        kwargs = mock_webpush.call_args.kwargs
        assert kwargs["subscription_info"] == SUBSCRIPTION
        assert json.loads(kwargs["data"]) == {**notification, "detect_info": DETECT_INFO}
        assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}
        assert kwargs["vapid_private_key"] is mock_vapid.from_string.return_value

    @pytest.mark.asyncio
    async def test_vapid_initialized_once(self, mock_vapid, mock_webpush):
        service = PushNotificationService(MagicMock())

        await service.send_motion_notification(make_notification(), _webpush_settings())
        await service.send_motion_notification(make_notification(), _webpush_settings())

        assert service.initialized is True
        mock_vapid.from_string.assert_called_once_with(private_key="private")
        assert mock_webpush.call_count == 2

    @pytest.mark.asyncio
    async def test_no_subscription_sends_nothing(self, mock_vapid, mock_webpush):
        service = PushNotificationService(MagicMock())

        result = await service.send_motion_notification(make_notification(), _webpush_settings(None))

        assert result is None
        mock_webpush.assert_not_called()

    @pytest.mark.asyncio
    async def test_gone_clears_subscription(self, mock_vapid, mock_webpush):
        settings_service = MagicMock()
        mock_webpush.side_effect = _gone()
        service = PushNotificationService(settings_service)

        result = await service.send_motion_notification(make_notification(), _webpush_settings())

        assert result.success is False
        assert result.status_code == 410
        assert result.subscription_removed is True
        settings_service.clear_push_subscription.assert_called_once()

    @pytest.mark.asyncio
    async def test_gone_keeps_vapid_keys(self, mock_vapid, mock_webpush, settings_service):
        settings_service.update_section("webpush", {
            "pub_key": "public", "priv_key": "private", "subscription": SUBSCRIPTION,
        })
        mock_webpush.side_effect = _gone()
        service = PushNotificationService(settings_service)

        await service.send_motion_notification(make_notification(), settings_service.get_section("webpush"))

        webpush = settings_service.get_section("webpush")
        assert webpush.subscription is None
        assert (webpush.pub_key, webpush.priv_key) == ("public", "private")

    @pytest.mark.asyncio
    async def test_other_push_errors_keep_subscription(self, mock_vapid, mock_webpush):
        settings_service = MagicMock()
        mock_webpush.side_effect = _gone(status_code=500)
        service = PushNotificationService(settings_service)

        result = await service.send_motion_notification(make_notification(), _webpush_settings())

        assert result.success is False
        assert result.subscription_removed is False
        settings_service.clear_push_subscription.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_not_raised(self, mock_vapid, mock_webpush):
        mock_webpush.side_effect = ConnectionError("network down")
        service = PushNotificationService(MagicMock())

        result = await service.send_motion_notification(make_notification(), _webpush_settings())

        assert result.success is False
        assert "network down" in result.error

    @pytest.mark.asyncio
    async def test_failing_subscription_removal_is_not_raised(self, mock_vapid, mock_webpush):
        settings_service = MagicMock()
        settings_service.clear_push_subscription.side_effect = RuntimeError("database locked")
        mock_webpush.side_effect = _gone()
        service = PushNotificationService(settings_service)

        result = await service.send_motion_notification(make_notification(), _webpush_settings())

        assert result.subscription_removed is False

    @pytest.mark.asyncio
    async def test_missing_private_key(self, mock_vapid, mock_webpush):
        service = PushNotificationService(MagicMock())

        result = await service.send_motion_notification(
            make_notification(),
            WebPushSettings(pub_key="public", priv_key=None, subscription=SUBSCRIPTION),
        )

        assert result.success is False
        mock_vapid.from_string.assert_not_called()
        mock_webpush.assert_not_called()
