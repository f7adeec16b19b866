"""Pytest fixtures and configuration for test suite

This module provides:
1. Database session fixtures for test isolation
2. Factory functions for creating test objects with sensible defaults
3. Fakes for the external collaborators of the motion pipeline

Factory Functions:
    - make_settings(**sections) -> ControllerSettings
    - make_camera(**overrides) -> CameraConfig
    - make_notification(**overrides) -> dict

Fakes:
    - FakeMediaRecorder: BaseMediaRecorder that records calls
    - FakeLabelDetector: BaseLabelDetector returning fixed labels
"""
import pytest
from typing import Any, Dict, List, Optional
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from motion_relay.core.database import Base
import motion_relay.models  # noqa: F401
from motion_relay.schemas.motion import CameraConfig, DetectionSettings, DetectedLabel
from motion_relay.schemas.settings import ControllerSettings
from motion_relay.services.detection_filter import BaseLabelDetector
from motion_relay.services.media_recorder import BaseMediaRecorder
from motion_relay.services.settings_service import SettingsService


# =============================================================================
# Factory Functions for Test Objects
# =============================================================================

def make_settings(**sections) -> ControllerSettings:
    """
    Factory function to create ControllerSettings for testing.

    Args:
        **sections: Section dicts (general, recordings, notifications,
                    webhook, telegram, webpush). Missing sections use defaults.

    Example:
        settings = make_settings(recordings={"active": True, "type": "Video"})
    """
    return ControllerSettings.model_validate(sections)


def make_camera(
    name: str = "Front Door",
    detection: Optional[Dict[str, Any]] = None,
    video_config: Optional[Dict[str, Any]] = None,
) -> CameraConfig:
    """
    Factory function to create CameraConfig instances for testing.

    Example:
        camera = make_camera(detection={"active": True, "labels": ["person"]})
    """
    return CameraConfig(
        name=name,
        video_config=video_config or {"source": "-i rtsp://camera.local/stream"},
        detection=DetectionSettings(**(detection or {})),
    )


def make_notification(
    id: str = "a1b2c3d4e5f60718",
    camera: str = "Front Door",
    type: str = "motion",
    time: str = "17.10.2026, 12:00:00",
    timestamp: int = 1792238400,
    labels: Optional[List[str]] = None,
    recording: bool = False,
) -> Dict[str, Any]:
    """Factory function for notification payloads."""
    return {
        "id": id,
        "camera": camera,
        "type": type,
        "time": time,
        "timestamp": timestamp,
        "labels": labels,
        "recording": recording,
    }


# =============================================================================
# Fakes
# =============================================================================

class FakeMediaRecorder(BaseMediaRecorder):
    """Media recorder that only records what it was asked to do."""

    def __init__(self, image: bytes = b"\xff\xd8fake-jpeg\xff\xd9"):
        self.image = image
        self.calls: List[tuple] = []

    async def get_snapshot(self, video_config):
        self.calls.append(("get_snapshot", video_config))
        return self.image

    async def store_snapshot(self, camera, image, info, path, intermediate):
        self.calls.append(("store_snapshot", camera.name, info["id"], path, intermediate))

    async def store_video(self, camera, info, path, duration):
        self.calls.append(("store_video", camera.name, info["id"], path, duration))


class FakeLabelDetector(BaseLabelDetector):
    """Label detector returning a fixed result or raising a fixed error."""

    def __init__(self, labels: Optional[List[DetectedLabel]] = None, error: Optional[Exception] = None):
        self.labels = labels or []
        self.error = error
        self.calls = 0

    async def detect_labels(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.labels)


# =============================================================================
# Database Session Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """
    Create an in-memory SQLite database for testing

    StaticPool keeps one connection, so every session created by a
    service sees the same in-memory database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test database, for service injection."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """
    SQLAlchemy Session for the test database

    Cleanup:
        Closes the session after the test completes
    """
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings_service(session_factory):
    """SettingsService backed by the test database."""
    return SettingsService(session_factory=session_factory)


@pytest.fixture
def media_recorder():
    return FakeMediaRecorder()


@pytest.fixture
def front_door():
    """Camera without label detection."""
    return make_camera()
