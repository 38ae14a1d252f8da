"""Tests for core data models."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from watermark_pipeline.core.models import (
    VIDEO_TRANSITIONS,
    BatchItem,
    BatchStatus,
    InpaintAlgorithm,
    ProcessingMethod,
    ProcessResult,
    Region,
    RemovalOptions,
    VideoDescriptor,
    VideoProgress,
    VideoState,
)


class TestRegion:
    """Tests for the Region model."""

    def test_region_edges_and_area(self):
        """Test derived edges and area."""
        region = Region(x=10, y=20, width=30, height=40)
        assert region.right == 40
        assert region.bottom == 60
        assert region.area == 1200

    def test_region_rejects_negative_origin(self):
        """Test that negative coordinates are rejected by the model."""
        with pytest.raises(PydanticValidationError):
            Region(x=-1, y=0, width=10, height=10)

    def test_region_is_immutable(self):
        """Test that regions cannot be mutated."""
        region = Region(x=0, y=0, width=5, height=5)
        with pytest.raises(PydanticValidationError):
            region.x = 3

    def test_regions_compare_by_value(self):
        """Test value equality and hashing."""
        a = Region(x=1, y=2, width=3, height=4)
        b = Region(x=1, y=2, width=3, height=4)
        assert a == b
        assert hash(a) == hash(b)


class TestRemovalOptions:
    """Tests for RemovalOptions defaults and bounds."""

    def test_defaults(self):
        """Test default removal options."""
        options = RemovalOptions()
        assert options.algorithm is InpaintAlgorithm.TELEA
        assert options.dilate_pixels == 3
        assert options.inpaint_radius == 5.0
        assert options.method is ProcessingMethod.LOCAL
        assert options.lossless is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"dilate_pixels": -1},
            {"dilate_pixels": 11},
            {"inpaint_radius": 0.5},
            {"inpaint_radius": 16},
        ],
    )
    def test_out_of_range_values_rejected(self, kwargs):
        """Test that tunables outside their ranges are rejected."""
        with pytest.raises(PydanticValidationError):
            RemovalOptions(**kwargs)

    def test_enums_accept_string_values(self):
        """Test construction from plain strings."""
        options = RemovalOptions(algorithm="navier_stokes", method="cloud")
        assert options.algorithm is InpaintAlgorithm.NAVIER_STOKES
        assert options.method is ProcessingMethod.CLOUD


class TestProcessResult:
    """Tests for ProcessResult size accounting."""

    def test_size_reduction_percent(self):
        """Test the percentage saved."""
        result = ProcessResult(
            output_path="/tmp/out.png", original_size_bytes=1000, processed_size_bytes=750
        )
        assert result.size_reduction_percent == 25

    def test_size_reduction_negative_when_output_grew(self):
        """Test that a larger output gives a negative reduction."""
        result = ProcessResult(
            output_path="/tmp/out.png", original_size_bytes=1000, processed_size_bytes=1500
        )
        assert result.size_reduction_percent == -50

    def test_size_reduction_zero_original(self):
        """Test that an empty source gives zero instead of dividing by zero."""
        result = ProcessResult(
            output_path="/tmp/out.png", original_size_bytes=0, processed_size_bytes=10
        )
        assert result.size_reduction_percent == 0

    def test_size_reduction_is_serialized(self):
        """Test that the computed field is part of the dump."""
        result = ProcessResult(
            output_path="/tmp/out.png", original_size_bytes=200, processed_size_bytes=100
        )
        assert result.model_dump()["size_reduction_percent"] == 50


class TestBatchItem:
    """Tests for BatchItem."""

    def test_from_path_sets_display_name(self):
        """Test that the display name defaults to the file name."""
        item = BatchItem.from_path("/photos/holiday/beach.jpg")
        assert item.display_name == "beach.jpg"
        assert item.status is BatchStatus.PENDING
        assert item.error is None
        assert item.processed_path is None

    def test_ids_are_unique(self):
        """Test that every item gets its own id."""
        ids = {BatchItem.from_path(f"/photos/{i}.jpg").id for i in range(20)}
        assert len(ids) == 20

    @pytest.mark.parametrize(
        "status,terminal",
        [
            (BatchStatus.PENDING, False),
            (BatchStatus.PROCESSING, False),
            (BatchStatus.COMPLETED, True),
            (BatchStatus.FAILED, True),
        ],
    )
    def test_terminal_statuses(self, status, terminal):
        """Test which statuses are terminal."""
        assert status.is_terminal is terminal


class TestVideoModels:
    """Tests for the video descriptor, progress and state machine."""

    def test_descriptor_duration(self):
        """Test duration derived from frame count and fps."""
        descriptor = VideoDescriptor.from_stream(1920, 1080, 30.0, 90, "avc1")
        assert descriptor.duration_seconds == pytest.approx(3.0)
        assert descriptor.codec == "avc1"

    def test_descriptor_zero_fps(self):
        """Test that an unknown frame rate gives a zero duration."""
        descriptor = VideoDescriptor.from_stream(640, 480, 0.0, 90)
        assert descriptor.duration_seconds == 0.0

    def test_progress_defaults(self):
        """Test the empty progress snapshot."""
        progress = VideoProgress()
        assert progress.current_frame == 0
        assert progress.percent == 0.0
        assert progress.estimated_remaining_seconds is None

    def test_terminal_states_have_no_transitions(self):
        """Test that terminal states are final."""
        for state in VideoState:
            if state.is_terminal:
                assert VIDEO_TRANSITIONS[state] == frozenset()
            else:
                assert VIDEO_TRANSITIONS[state]

    def test_running_reaches_every_terminal_state(self):
        """Test transitions out of RUNNING."""
        assert VIDEO_TRANSITIONS[VideoState.RUNNING] == {
            VideoState.COMPLETED,
            VideoState.FAILED,
            VideoState.CANCELLED,
        }
