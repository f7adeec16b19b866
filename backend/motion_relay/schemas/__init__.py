"""Pydantic schemas for settings and motion events"""
from motion_relay.schemas.settings import (
    GeneralSettings,
    RecordingSettings,
    NotificationSettings,
    WebhookCameraSettings,
    WebhookSettings,
    TelegramCameraSettings,
    TelegramSettings,
    WebPushSettings,
    ControllerSettings,
    SETTINGS_SECTIONS,
)
from motion_relay.schemas.motion import (
    DetectionSettings,
    CameraConfig,
    MotionEvent,
    CorrelationContext,
    DetectedLabel,
    MotionResult,
)

__all__ = [
    "GeneralSettings",
    "RecordingSettings",
    "NotificationSettings",
    "WebhookCameraSettings",
    "WebhookSettings",
    "TelegramCameraSettings",
    "TelegramSettings",
    "WebPushSettings",
    "ControllerSettings",
    "SETTINGS_SECTIONS",
    "DetectionSettings",
    "CameraConfig",
    "MotionEvent",
    "CorrelationContext",
    "DetectedLabel",
    "MotionResult",
]
