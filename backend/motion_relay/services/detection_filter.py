"""Image Label Detection Filter

Optional content gate between snapshot capture and record creation. When a
camera has detection configured and a backend is available, the snapshot is
sent to the backend and the event only continues if one of the configured
labels was found with sufficient confidence.

A backend failure and "no configured label found" both reject the event.
Callers cannot tell the two apart; only the log lines differ.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from motion_relay.schemas.motion import DetectedLabel

logger = logging.getLogger(__name__)


class DetectionBackendError(Exception):
    """Raised by label detectors when the backend cannot analyze an image."""
    pass


class BaseLabelDetector(ABC):
    """
    Abstract base class for image label detection backends.

    Implementations wrap a hosted or local classifier and return every
    label found in the image with a confidence in percent (0-100).
    """

    @abstractmethod
    async def detect_labels(self, image: bytes) -> List[DetectedLabel]:
        """
        Detect labels in a JPEG snapshot.

        Args:
            image: Encoded image buffer

        Returns:
            Detected labels; empty list if nothing was recognized

        Raises:
            DetectionBackendError: If the backend call fails
        """
        pass


class DetectionOutcome(str, Enum):
    """Result kinds of the detection filter"""
    PASS_UNFILTERED = "pass_unfiltered"
    PASS = "pass"
    REJECT = "reject"


@dataclass
class DetectionResult:
    outcome: DetectionOutcome
    labels: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.outcome != DetectionOutcome.REJECT

    @property
    def detected_labels(self) -> Optional[List[str]]:
        """Labels to attach to the records, None when detection did not run."""
        if self.outcome == DetectionOutcome.PASS:
            return list(self.labels)
        return None


def match_labels(
    detected: Iterable[DetectedLabel],
    targets: Iterable[str],
    confidence: float,
) -> List[str]:
    """
    Intersect detected labels with the configured targets.

    Matching is case-insensitive; the detector's spelling is kept. Labels
    below the confidence threshold are dropped.
    """
    wanted = {t.lower() for t in targets}
    return [
        label.name for label in detected
        if label.name.lower() in wanted
        and label.confidence >= confidence
    ]


class DetectionFilter:
    """Runs the optional label detection gate for one snapshot."""

    def __init__(self, detector: Optional[BaseLabelDetector] = None):
        self.detector = detector

    @property
    def available(self) -> bool:
        return self.detector is not None

    async def evaluate(
        self,
        image: bytes,
        labels: List[str],
        confidence: int,
        configured: bool,
    ) -> DetectionResult:
        """
        Evaluate a snapshot against the configured labels.

        Args:
            image: Snapshot buffer
            labels: Target labels
            confidence: Minimum confidence (0-100)
            configured: Whether detection is enabled for the camera

        Returns:
            DetectionResult; PASS_UNFILTERED if detection is not configured
            or no backend is available
        """
        if not configured or not self.available:
            return DetectionResult(DetectionOutcome.PASS_UNFILTERED)

        logger.debug(f"Analyzing image for following labels: {', '.join(labels)}")

        try:
            detected = await self.detector.detect_labels(image)
        except Exception as e:
            logger.error(
                f"Can not analyze image, an error occured! {e}",
                extra={"error": str(e)}
            )
            return DetectionResult(DetectionOutcome.REJECT)

        detected = [label for label in detected if label is not None]
        matched = match_labels(detected, labels, confidence)

        if not matched:
            logger.debug(
                f"Label with confidence >= {confidence}% not found!",
                extra={"detected_labels": [label.name for label in detected]}
            )
            return DetectionResult(DetectionOutcome.REJECT)

        logger.debug(f"Label with confidence >= {confidence}% found: {', '.join(matched)}")
        return DetectionResult(DetectionOutcome.PASS, matched)
