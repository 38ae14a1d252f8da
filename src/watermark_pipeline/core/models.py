"""Shared data models for the watermark pipeline."""

import uuid
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class InpaintAlgorithm(str, Enum):
    """Local inpainting algorithm."""

    TELEA = "telea"
    NAVIER_STOKES = "navier_stokes"


class ProcessingMethod(str, Enum):
    """Which inpainting backend handles a request."""

    LOCAL = "local"
    CLOUD = "cloud"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class Region(BaseModel):
    """Rectangular selection in source-pixel coordinates."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return max(self.width, 0) * max(self.height, 0)


class RemovalOptions(BaseModel):
    """Tunable removal configuration.

    ``algorithm``, ``dilate_pixels`` and ``inpaint_radius`` only apply to
    the local method.
    """

    model_config = ConfigDict(frozen=True)

    algorithm: InpaintAlgorithm = InpaintAlgorithm.TELEA
    dilate_pixels: int = Field(default=3, ge=0, le=10)
    inpaint_radius: float = Field(default=5.0, ge=1.0, le=15.0)
    method: ProcessingMethod = ProcessingMethod.LOCAL
    lossless: bool = False


class ProcessResult(BaseModel):
    """Result of processing a single image."""

    output_path: str
    preview_data_url: Optional[str] = None
    original_size_bytes: int
    processed_size_bytes: int
    output_format: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_reduction_percent(self) -> int:
        """Percentage saved relative to the source; negative when the output grew."""
        if self.original_size_bytes <= 0:
            return 0
        return round((1 - self.processed_size_bytes / self.original_size_bytes) * 100)


class ImageInfo(BaseModel):
    path: str
    width: int
    height: int
    format: str = ""


class BatchStatus(str, Enum):
    """Lifecycle of a single batch item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchStatus.COMPLETED, BatchStatus.FAILED)


class BatchItem(BaseModel):
    """A file queued for batch processing."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source_path: str
    display_name: str = ""
    status: BatchStatus = BatchStatus.PENDING
    error: Optional[str] = None
    processed_path: Optional[str] = None

    def model_post_init(self, __context) -> None:
        if not self.display_name:
            self.display_name = Path(self.source_path).name

    @classmethod
    def from_path(cls, path) -> "BatchItem":
        return cls(source_path=str(path))


class BatchProgress(BaseModel):
    """Which item the batch runner is working on (1-based index)."""

    current_index: int
    total_count: int
    current_name: str


class VideoDescriptor(BaseModel):
    """Properties of a source video, read once at job start."""

    model_config = ConfigDict(frozen=True)

    width: int
    height: int
    fps: float
    frame_count: int
    duration_seconds: float = 0.0
    codec: str = ""

    @classmethod
    def from_stream(
        cls, width: int, height: int, fps: float, frame_count: int, codec: str = ""
    ) -> "VideoDescriptor":
        duration = frame_count / fps if fps > 0 else 0.0
        return cls(
            width=width,
            height=height,
            fps=fps,
            frame_count=frame_count,
            duration_seconds=duration,
            codec=codec,
        )


class VideoProgress(BaseModel):
    """Snapshot of an in-flight video run."""

    model_config = ConfigDict(frozen=True)

    current_frame: int = 0
    total_frames: int = 0
    percent: float = 0.0
    estimated_remaining_seconds: Optional[float] = None


class VideoState(str, Enum):
    """Video runner state machine."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (VideoState.COMPLETED, VideoState.FAILED, VideoState.CANCELLED)


VIDEO_TRANSITIONS = {
    VideoState.IDLE: frozenset({VideoState.RUNNING}),
    VideoState.RUNNING: frozenset(
        {VideoState.COMPLETED, VideoState.FAILED, VideoState.CANCELLED}
    ),
    VideoState.COMPLETED: frozenset(),
    VideoState.FAILED: frozenset(),
    VideoState.CANCELLED: frozenset(),
}


class VideoRunResult(BaseModel):
    """Result of a completed video run."""

    output_path: str
    frames_processed: int
    duration_seconds: float
    original_size_bytes: int = 0
    processed_size_bytes: int = 0
