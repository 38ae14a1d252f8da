"""OpenCV-backed video decoding/encoding and ffmpeg audio passthrough."""

import shutil
import subprocess
from pathlib import Path
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from .error_handling import with_error_handling
from .exceptions import MediaIOError
from .logging_config import get_logger
from .models import VideoDescriptor

logger = get_logger("watermark-pipeline.video-io")

# (fourcc, suffix) candidates in order of preference
LOSSY_CODECS: Sequence[Tuple[str, str]] = (("avc1", ".mp4"), ("mp4v", ".mp4"))
LOSSLESS_CODECS: Sequence[Tuple[str, str]] = (("FFV1", ".mkv"),)


def fourcc_to_string(fourcc: int) -> str:
    """Decode OpenCV's integer FOURCC into its four characters."""
    chars = [chr((int(fourcc) >> (8 * i)) & 0xFF) for i in range(4)]
    return "".join(chars).strip("\x00").strip()


class OpenCVVideoReader:
    """Sequential frame reader over ``cv2.VideoCapture``. Frames are BGR."""

    def __init__(self, path: Path):
        self._path = Path(path)
        if not self._path.is_file():
            raise MediaIOError(f"Video file not found: {self._path}")
        self._capture = cv2.VideoCapture(str(self._path))
        if not self._capture.isOpened():
            self._capture.release()
            raise MediaIOError(f"Failed to open video file: {self._path}")
        self._descriptor = VideoDescriptor.from_stream(
            width=int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0),
            frame_count=max(int(self._capture.get(cv2.CAP_PROP_FRAME_COUNT)), 0),
            codec=fourcc_to_string(int(self._capture.get(cv2.CAP_PROP_FOURCC))),
        )

    @property
    def descriptor(self) -> VideoDescriptor:
        return self._descriptor

    @with_error_handling
    def read(self) -> Optional[np.ndarray]:
        ok, frame = self._capture.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def close(self) -> None:
        self._capture.release()


class OpenCVVideoWriter:
    """Frame writer over ``cv2.VideoWriter``."""

    def __init__(self, path: Path, descriptor: VideoDescriptor, fourcc: str):
        self._path = Path(path)
        fps = descriptor.fps if descriptor.fps > 0 else 30.0
        self._writer = cv2.VideoWriter(
            str(self._path),
            cv2.VideoWriter_fourcc(*fourcc),
            fps,
            (descriptor.width, descriptor.height),
            True,
        )
        self.fourcc = fourcc

    @property
    def is_opened(self) -> bool:
        return bool(self._writer.isOpened())

    @with_error_handling
    def write(self, frame: np.ndarray) -> None:
        self._writer.write(frame)

    def close(self) -> None:
        self._writer.release()


class OpenCVVideoBackend:
    """Production video backend: OpenCV for frames, ffmpeg (if installed) for audio."""

    def __init__(self, ffmpeg_binary: Optional[str] = None):
        self._ffmpeg = ffmpeg_binary if ffmpeg_binary is not None else shutil.which("ffmpeg")

    @property
    def has_ffmpeg(self) -> bool:
        return bool(self._ffmpeg)

    def open_reader(self, path: Path) -> OpenCVVideoReader:
        return OpenCVVideoReader(path)

    def output_suffix(self, lossless: bool) -> str:
        return (LOSSLESS_CODECS if lossless else LOSSY_CODECS)[0][1]

    def open_writer(
        self, path: Path, descriptor: VideoDescriptor, lossless: bool
    ) -> OpenCVVideoWriter:
        path = Path(path)
        candidates = [
            fourcc
            for fourcc, suffix in (LOSSLESS_CODECS if lossless else LOSSY_CODECS)
            if suffix == path.suffix
        ]
        for fourcc in candidates:
            writer = OpenCVVideoWriter(path, descriptor, fourcc)
            if writer.is_opened:
                logger.debug(f"Opened video writer {path} with codec {fourcc}")
                return writer
            writer.close()
            logger.warning(f"Codec {fourcc} unavailable, trying next candidate")
        raise MediaIOError(f"Failed to open video writer for {path}")

    def extract_audio(self, source: Path, destination: Path) -> bool:
        if not self._ffmpeg:
            logger.info("ffmpeg not found; output video will have no audio")
            return False
        result = subprocess.run(
            [
                self._ffmpeg, "-y", "-loglevel", "error",
                "-i", str(source),
                "-vn", "-acodec", "aac", "-b:a", "192k",
                str(destination),
            ],
            capture_output=True,
            check=False,
        )
        has_audio = result.returncode == 0 and Path(destination).is_file()
        if not has_audio:
            logger.debug(f"No audio track extracted from {source}")
        return has_audio

    def merge_audio(self, video: Path, audio: Path, destination: Path) -> None:
        if not self._ffmpeg:
            raise MediaIOError("ffmpeg is required to merge audio")
        result = subprocess.run(
            [
                self._ffmpeg, "-y", "-loglevel", "error",
                "-i", str(video),
                "-i", str(audio),
                "-c:v", "copy", "-c:a", "aac",
                "-map", "0:v:0", "-map", "1:a:0",
                str(destination),
            ],
            capture_output=True,
            check=False,
        )
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise MediaIOError(f"FFmpeg merge failed: {stderr}")
