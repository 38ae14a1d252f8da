"""Protocol definitions for dependency injection and testability."""

from pathlib import Path
from typing import Any, Optional, Protocol

import numpy as np

from .models import VideoDescriptor


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log error message."""
        ...


class CredentialStoreProtocol(Protocol):
    """Opaque storage for the cloud service API key."""

    def get(self) -> str:
        """Return the stored key, or an empty string."""
        ...

    def set(self, key: str) -> None:
        """Store a key."""
        ...

    def clear(self) -> None:
        """Forget the stored key."""
        ...


class VideoReader(Protocol):
    """Sequential frame source."""

    @property
    def descriptor(self) -> VideoDescriptor:
        ...

    def read(self) -> Optional[np.ndarray]:
        """Return the next frame, or None when the stream is exhausted."""
        ...

    def close(self) -> None:
        ...


class VideoWriter(Protocol):
    """Sequential frame sink."""

    def write(self, frame: np.ndarray) -> None:
        ...

    def close(self) -> None:
        ...


class VideoBackend(Protocol):
    """Container/codec operations the video runner depends on."""

    def open_reader(self, path: Path) -> VideoReader:
        ...

    def open_writer(
        self, path: Path, descriptor: VideoDescriptor, lossless: bool
    ) -> VideoWriter:
        ...

    def output_suffix(self, lossless: bool) -> str:
        ...

    def extract_audio(self, source: Path, destination: Path) -> bool:
        """Copy the audio track of ``source`` to ``destination``; False if there is none."""
        ...

    def merge_audio(self, video: Path, audio: Path, destination: Path) -> None:
        ...
