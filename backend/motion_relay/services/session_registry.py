"""
Recording Session Registry

Tracks which cameras are currently being recorded. A camera holds at most
one active session; a motion event that cannot get a session still
produces a notification and a snapshot, just no video.
"""
import logging
import threading
from typing import Callable, List, Optional, Set

from motion_relay.core.metrics import update_recording_sessions

logger = logging.getLogger(__name__)


class RecordingSessionRegistry:
    """
    Grants, denies and releases per-camera recording sessions.

    Grant/check/release run under one lock, so two concurrent requests for
    the same camera never both get a session. Works from the event loop and
    from worker threads alike.
    """

    def __init__(self, recording_enabled: Optional[Callable[[], bool]] = None):
        """
        Args:
            recording_enabled: Optional callable returning the global recording
                switch. When it returns False every request is denied.
        """
        self._recording_enabled = recording_enabled
        self._active: Set[str] = set()
        self._lock = threading.Lock()

    def request_session(self, camera_name: str) -> bool:
        """
        Request a recording session for a camera.

        Args:
            camera_name: Camera display name

        Returns:
            True if the session was granted, False if recording is disabled
            or the camera is already being recorded
        """
        if self._recording_enabled is not None and not self._recording_enabled():
            logger.debug(f"Recording disabled, session denied for {camera_name}")
            return False

        with self._lock:
            if camera_name in self._active:
                logger.debug(f"Recording session for {camera_name} already active")
                return False
            self._active.add(camera_name)
            count = len(self._active)

        update_recording_sessions(count)
        logger.debug(f"Recording session granted for {camera_name}")
        return True

    def close_session(self, camera_name: str) -> None:
        """Release the session of a camera. Releasing a free camera is a no-op."""
        with self._lock:
            self._active.discard(camera_name)
            count = len(self._active)

        update_recording_sessions(count)
        logger.debug(f"Recording session closed for {camera_name}")

    def is_active(self, camera_name: str) -> bool:
        with self._lock:
            return camera_name in self._active

    def active_sessions(self) -> List[str]:
        """Get the names of all cameras currently being recorded."""
        with self._lock:
            return sorted(self._active)
