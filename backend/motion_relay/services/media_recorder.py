"""Media Recorder Interface

The capture and encoding engine lives outside this package. The motion
pipeline talks to it through BaseMediaRecorder.

Media files are named after the correlation token:
- <path>/<id>.jpeg      snapshot
- <path>/<id>@2.jpeg    final snapshot produced alongside a video
- <path>/<id>.mp4       video
"""

import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from motion_relay.schemas.motion import CameraConfig


def snapshot_path(path: str, record_id: str, video: bool = False) -> str:
    """Path of the snapshot for a record; video recordings keep their final snapshot as <id>@2.jpeg."""
    return os.path.join(path, f"{record_id}@2.jpeg" if video else f"{record_id}.jpeg")


def video_path(path: str, record_id: str) -> str:
    return os.path.join(path, f"{record_id}.mp4")


def media_paths(path: str, record_id: str) -> List[str]:
    """All media files that can belong to a record."""
    return [
        snapshot_path(path, record_id),
        snapshot_path(path, record_id, video=True),
        video_path(path, record_id),
    ]


class BaseMediaRecorder(ABC):
    """
    Abstract base class for snapshot capture and media persistence.

    Exceptions raised by any method are fatal for the motion pipeline that
    called it and propagate to the caller of handle_motion.
    """

    @abstractmethod
    async def get_snapshot(self, video_config: Dict[str, Any]) -> bytes:
        """
        Capture a JPEG snapshot from the camera source.

        Args:
            video_config: Camera source configuration

        Returns:
            Encoded image buffer
        """
        pass

    @abstractmethod
    async def store_snapshot(
        self,
        camera: CameraConfig,
        image: bytes,
        info: Dict[str, Any],
        path: str,
        intermediate: bool,
    ) -> None:
        """
        Persist a snapshot.

        Args:
            camera: Camera the snapshot belongs to
            image: Snapshot buffer
            info: Recording record (id, camera, time, labels, ...)
            path: Recording directory
            intermediate: True when a video will follow and produce the final snapshot
        """
        pass

    @abstractmethod
    async def store_video(
        self,
        camera: CameraConfig,
        info: Dict[str, Any],
        path: str,
        duration: int,
    ) -> None:
        """
        Record and persist a video. Blocks until encoding finished or timed out.

        Args:
            camera: Camera to record
            info: Recording record
            path: Recording directory
            duration: Video length in seconds
        """
        pass
