"""
Prometheus Metrics Registry

Provides Prometheus-compatible metrics for:
- Motion events by pipeline outcome
- Channel dispatches (webhook, telegram, push, realtime)
- Recording session grants
"""
import logging
from prometheus_client import (
    Counter, Gauge,
    CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)

logger = logging.getLogger(__name__)

# Create a custom registry to avoid conflicts with default registry
REGISTRY = CollectorRegistry()

# ============================================================================
# Motion Pipeline Metrics
# ============================================================================

motion_events_total = Counter(
    'motion_events_total',
    'Total motion/doorbell events by pipeline outcome',
    ['camera', 'outcome'],
    registry=REGISTRY
)

recording_sessions_active = Gauge(
    'recording_sessions_active',
    'Number of cameras currently holding a recording session',
    registry=REGISTRY
)

# ============================================================================
# Channel Metrics
# ============================================================================

channel_dispatch_total = Counter(
    'channel_dispatch_total',
    'Total channel dispatches by channel and status',
    ['channel', 'status'],
    registry=REGISTRY
)

push_notifications_sent_total = Counter(
    'push_notifications_sent_total',
    'Total push notifications sent',
    ['status'],
    registry=REGISTRY
)


def record_motion_event(camera: str, outcome: str):
    """
    Record a motion event outcome.

    Args:
        camera: Camera display name
        outcome: One of inactive, at_home, label_rejected, recorded, snapshot, failed
    """
    motion_events_total.labels(camera=camera, outcome=outcome).inc()


def record_channel_dispatch(channel: str, status: str):
    """
    Record a channel dispatch.

    Args:
        channel: webhook, telegram, push or realtime
        status: success, failure or skipped
    """
    channel_dispatch_total.labels(channel=channel, status=status).inc()


def record_push_notification_sent(status: str):
    """Record push notification delivery status (success, failure, gone)."""
    push_notifications_sent_total.labels(status=status).inc()


def update_recording_sessions(count: int):
    """Update the number of active recording sessions."""
    recording_sessions_active.set(count)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get Prometheus content type header value."""
    return CONTENT_TYPE_LATEST
