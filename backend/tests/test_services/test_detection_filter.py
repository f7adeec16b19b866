"""Tests for the image label detection filter"""
import logging

import pytest

from motion_relay.schemas.motion import DetectedLabel
from motion_relay.services.detection_filter import (
    DetectionBackendError,
    DetectionFilter,
    DetectionOutcome,
    match_labels,
)
from tests.conftest import FakeLabelDetector

IMAGE = b"jpeg"


class TestMatchLabels:

    def test_case_insensitive_match_keeps_detector_spelling(self):
        detected = [DetectedLabel(name="Person", confidence=97.5)]

        assert match_labels(detected, ["person"], 90) == ["Person"]

    def test_threshold_is_inclusive(self):
        detected = [DetectedLabel(name="Dog", confidence=90)]

        assert match_labels(detected, ["dog"], 90) == ["Dog"]

    def test_below_threshold_is_dropped(self):
        detected = [DetectedLabel(name="Dog", confidence=89.9)]

        assert match_labels(detected, ["dog"], 90) == []

    def test_unconfigured_labels_are_dropped(self):
        detected = [
            DetectedLabel(name="Car", confidence=99),
            DetectedLabel(name="Person", confidence=99),
        ]

        assert match_labels(detected, ["PERSON"], 50) == ["Person"]


class TestDetectionFilter:

    @pytest.mark.asyncio
    async def test_not_configured_passes_unfiltered(self):
        detector = FakeLabelDetector()
        result = await DetectionFilter(detector).evaluate(IMAGE, ["person"], 90, configured=False)

        assert result.outcome == DetectionOutcome.PASS_UNFILTERED
        assert result.passed is True
        assert result.detected_labels is None
        assert detector.calls == 0

    @pytest.mark.asyncio
    async def test_no_backend_passes_unfiltered(self):
        result = await DetectionFilter(None).evaluate(IMAGE, ["person"], 90, configured=True)

        assert result.outcome == DetectionOutcome.PASS_UNFILTERED
        assert result.detected_labels is None

    @pytest.mark.asyncio
    async def test_matching_label_passes(self):
        detector = FakeLabelDetector([DetectedLabel(name="Person", confidence=95)])

        result = await DetectionFilter(detector).evaluate(IMAGE, ["person"], 90, configured=True)

        assert result.outcome == DetectionOutcome.PASS
        assert result.detected_labels == ["Person"]

    @pytest.mark.asyncio
    async def test_no_match_rejects(self):
        detector = FakeLabelDetector([DetectedLabel(name="Cat", confidence=99)])

        result = await DetectionFilter(detector).evaluate(IMAGE, ["person"], 90, configured=True)

        assert result.outcome == DetectionOutcome.REJECT
        assert result.passed is False

    @pytest.mark.asyncio
    async def test_backend_error_rejects_and_logs(self, caplog):
        detector = FakeLabelDetector(error=DetectionBackendError("throttled"))

        with caplog.at_level(logging.ERROR, logger="motion_relay.services.detection_filter"):
            result = await DetectionFilter(detector).evaluate(IMAGE, ["person"], 90, configured=True)

        assert result.outcome == DetectionOutcome.REJECT
        assert "throttled" in caplog.text

    @pytest.mark.asyncio
    async def test_backend_error_and_no_match_look_the_same(self):
        failing = await DetectionFilter(FakeLabelDetector(error=RuntimeError("down"))).evaluate(
            IMAGE, ["person"], 90, configured=True
        )
        empty = await DetectionFilter(FakeLabelDetector([])).evaluate(
            IMAGE, ["person"], 90, configured=True
        )

        assert failing == empty

    @pytest.mark.asyncio
    async def test_missing_entries_from_backend_are_ignored(self):
        detector = FakeLabelDetector([None, DetectedLabel(name="Cat", confidence=99)])

        result = await DetectionFilter(detector).evaluate(IMAGE, ["person"], 90, configured=True)

        assert result.outcome == DetectionOutcome.REJECT

    @pytest.mark.asyncio
    async def test_missing_entries_do_not_hide_a_match(self):
        detector = FakeLabelDetector([None, DetectedLabel(name="Person", confidence=99)])

        result = await DetectionFilter(detector).evaluate(IMAGE, ["person"], 90, configured=True)

        assert result.outcome == DetectionOutcome.PASS
        assert result.detected_labels == ["Person"]
