"""Pydantic schemas for motion events and the per-event correlation data"""
from pydantic import BaseModel, Field
from typing import Optional, Literal, List, Dict, Any


class DetectionSettings(BaseModel):
    """Per-camera image label detection configuration"""
    active: bool = Field(False, description="Whether snapshots are filtered by label detection")
    labels: List[str] = Field(default_factory=list, description="Labels that let an event through")
    confidence: int = Field(90, ge=0, le=100, description="Minimum label confidence in percent")


class CameraConfig(BaseModel):
    """Camera as seen by the motion pipeline"""
    name: str = Field(..., min_length=1, description="Display name, also the camera identity")
    video_config: Dict[str, Any] = Field(
        default_factory=dict,
        description="Source configuration handed to the media recorder"
    )
    detection: DetectionSettings = Field(default_factory=DetectionSettings)


class MotionEvent(BaseModel):
    """A single motion or doorbell trigger"""
    camera_name: str
    event_type: Literal['motion', 'doorbell'] = 'motion'
    active: bool = True


class CorrelationContext(BaseModel):
    """
    Data shared by the notification and recording of one event.

    Attributes:
        hash: Correlation token, hex encoded
        time: Human readable time (DD.MM.YYYY, HH:mm:ss)
        timestamp: Epoch seconds
        record: Whether a recording session was granted (video, not only snapshot)
    """
    hash: str
    time: str
    timestamp: int
    record: bool = False

    model_config = {
        "frozen": True
    }


class DetectedLabel(BaseModel):
    """Label returned by a detection backend"""
    name: str
    confidence: float = Field(..., ge=0, le=100)


class MotionResult(BaseModel):
    """Outcome of one handle_motion call, mainly for callers and tests"""
    admitted: bool
    reason: Optional[str] = None
    notification: Optional[Dict[str, Any]] = None
    recorded: bool = False
