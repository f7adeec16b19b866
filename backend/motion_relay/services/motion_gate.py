"""Motion gate: decides whether a raw trigger enters the pipeline"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

REASON_INACTIVE = "inactive"
REASON_AT_HOME = "at_home"


@dataclass
class GateDecision:
    """Admission result; reason is set when the event was rejected."""
    admitted: bool
    reason: Optional[str] = None


def check_motion_gate(
    active: bool,
    camera_name: str,
    at_home: bool,
    exclude: Iterable[str],
) -> GateDecision:
    """
    Admit an event iff it is active and nobody is home, or the camera is
    excluded from home suppression.

    Rejections are not errors; home suppression is logged at debug level.

    Args:
        active: Motion state reported by the camera
        camera_name: Camera display name
        at_home: Home presence flag
        exclude: Cameras that keep notifying while at home

    Returns:
        GateDecision
    """
    if not active:
        return GateDecision(admitted=False, reason=REASON_INACTIVE)

    if at_home and camera_name not in set(exclude):
        logger.debug(
            f"Skip motion trigger. At Home is active and {camera_name} is not excluded!"
        )
        return GateDecision(admitted=False, reason=REASON_AT_HOME)

    return GateDecision(admitted=True)
