"""Progress snapshots shared between a video run and its observers."""

import threading
from typing import Optional

from .models import VideoProgress


def compute_video_progress(
    current_frame: int, total_frames: int, elapsed_seconds: float
) -> VideoProgress:
    """
    Build a progress snapshot with an ETA derived from elapsed wall-clock time.

    The remaining time is unknown until at least one frame has been done.
    ``total_frames`` comes from container metadata and can undercount, so
    the percentage is capped at 100.
    """
    if total_frames > 0:
        percent = min(current_frame / total_frames * 100.0, 100.0)
    else:
        percent = 0.0

    remaining: Optional[float] = None
    if percent > 0:
        estimated_total = elapsed_seconds / percent * 100.0
        remaining = max(0.0, estimated_total - elapsed_seconds)

    return VideoProgress(
        current_frame=current_frame,
        total_frames=total_frames,
        percent=percent,
        estimated_remaining_seconds=remaining,
    )


class ProgressReporter:
    """
    Single-writer, multi-reader holder of the latest progress snapshot.

    Snapshots are immutable; the lock only guards the reference swap, so a
    reader never waits on frame processing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[VideoProgress] = None

    def publish(self, progress: VideoProgress) -> None:
        with self._lock:
            self._snapshot = progress

    def snapshot(self) -> Optional[VideoProgress]:
        """Return the last published snapshot, or None when no run is active."""
        with self._lock:
            return self._snapshot

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None

    @property
    def active(self) -> bool:
        return self.snapshot() is not None
