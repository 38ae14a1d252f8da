"""Runners that sequence the removal service over batches and video frames."""

from .batch import BatchRunner
from .video import VideoJob, VideoRunner

__all__ = [
    "BatchRunner",
    "VideoJob",
    "VideoRunner",
]
