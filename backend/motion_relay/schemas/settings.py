"""Pydantic schemas for the persisted user settings sections"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal, List, Dict, Any, Union


class GeneralSettings(BaseModel):
    """Home presence settings"""
    at_home: bool = Field(False, description="Suppress motion while someone is at home")
    exclude: List[str] = Field(
        default_factory=list,
        description="Cameras that keep notifying while at home"
    )


class RecordingSettings(BaseModel):
    """Recording storage settings"""
    active: bool = Field(False, description="Whether motion events are recorded")
    path: str = Field("./data/recordings", description="Directory for snapshots and videos")
    timer: int = Field(10, ge=1, description="Video length in seconds")
    type: Literal['Snapshot', 'Video'] = Field('Snapshot', description="Recording output type")
    remove_after: Optional[Union[int, float, str]] = Field(
        None,
        description="Seconds until a recording expires; 0 or non-numeric disables expiry"
    )


class NotificationSettings(BaseModel):
    """Notification log settings"""
    clear_timer: Optional[Union[int, float, str]] = Field(
        None,
        description="Seconds until a notification expires; 0 or non-numeric disables expiry"
    )


class WebhookCameraSettings(BaseModel):
    endpoint: Optional[str] = None


class WebhookSettings(BaseModel):
    active: bool = False
    cameras: Dict[str, WebhookCameraSettings] = Field(default_factory=dict)


class TelegramCameraSettings(BaseModel):
    type: Literal['Text', 'Snapshot', 'Video', 'Disabled'] = 'Disabled'


class TelegramSettings(BaseModel):
    """Telegram bot settings; motion_on may contain '@' as camera name placeholder"""
    active: bool = False
    token: Optional[str] = None
    chat_id: Optional[str] = None
    motion_on: Optional[str] = None
    cameras: Dict[str, TelegramCameraSettings] = Field(default_factory=dict)

    @field_validator('chat_id', mode='before')
    @classmethod
    def coerce_chat_id(cls, v: Any) -> Optional[str]:
        """Chat ids are numeric for users and groups; keep them as strings."""
        if v is None:
            return None
        return str(v)


class WebPushSettings(BaseModel):
    """VAPID key pair and the single stored browser subscription"""
    pub_key: Optional[str] = None
    priv_key: Optional[str] = None
    subscription: Optional[Dict[str, Any]] = None


class ControllerSettings(BaseModel):
    """All settings sections read by the motion pipeline"""
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    recordings: RecordingSettings = Field(default_factory=RecordingSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    webpush: WebPushSettings = Field(default_factory=WebPushSettings)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "general": {"at_home": False, "exclude": ["Garage"]},
                    "recordings": {"active": True, "path": "/var/lib/recordings", "timer": 10, "type": "Video"},
                    "notifications": {"clear_timer": 86400},
                    "webhook": {"active": True, "cameras": {"Front Door": {"endpoint": "https://example.com/hook"}}},
                    "telegram": {"active": True, "token": "123:abc", "chat_id": "42", "motion_on": "@: Motion!",
                                 "cameras": {"Front Door": {"type": "Snapshot"}}},
                    "webpush": {"pub_key": "BN...", "priv_key": "x3...", "subscription": None},
                }
            ]
        }
    }


SETTINGS_SECTIONS = tuple(ControllerSettings.model_fields.keys())
