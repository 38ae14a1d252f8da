"""Video runner - frame-by-frame removal on a background thread."""

import threading
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

from ..core.exceptions import (
    InvalidStateTransition,
    MediaIOError,
    RunnerBusyError,
    WatermarkPipelineError,
)
from ..core.inpainters import Inpainter, create_inpainter
from ..core.logging_config import configure_worker_logging, get_logger
from ..core.models import (
    VIDEO_TRANSITIONS,
    MediaKind,
    Region,
    RemovalOptions,
    VideoDescriptor,
    VideoProgress,
    VideoRunResult,
    VideoState,
)
from ..core.progress import ProgressReporter, compute_video_progress
from ..core.protocols import CredentialStoreProtocol, VideoBackend, VideoReader
from ..core.services import InpainterFactory, check_inpainted
from ..core.temp_files import TempFileManager
from ..core.validation import validate_region, validate_request
from .common import log_configuration


class _RunCancelled(Exception):
    """Raised inside the worker when the cancellation flag is seen."""


class VideoJob:
    """Handle on one video run. Terminal states are final."""

    def __init__(self, video_path: Path, clock: Callable[[], float] = time.monotonic):
        self.id = uuid.uuid4().hex
        self.video_path = Path(video_path)
        self.result: Optional[VideoRunResult] = None
        self.error: Optional[Exception] = None
        self.descriptor: Optional[VideoDescriptor] = None
        self._clock = clock
        self._state = VideoState.IDLE
        self._state_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._progress = ProgressReporter()
        self._started_at: Optional[float] = None

    @property
    def state(self) -> VideoState:
        with self._state_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is VideoState.RUNNING

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def progress_reporter(self) -> ProgressReporter:
        return self._progress

    def transition(self, new_state: VideoState) -> None:
        with self._state_lock:
            if new_state not in VIDEO_TRANSITIONS[self._state]:
                raise InvalidStateTransition(
                    f"Video job cannot go from {self._state.value} to {new_state.value}"
                )
            self._state = new_state
            if new_state is VideoState.RUNNING:
                self._started_at = self._clock()

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def poll_progress(self) -> Optional[VideoProgress]:
        """Last published snapshot; None once the run has ended."""
        return self._progress.snapshot()

    def cancel(self) -> bool:
        """
        Request cooperative cancellation.

        Takes effect before the next frame starts. Returns False if the job
        has already finished.
        """
        if self.state.is_terminal:
            return False
        self._cancel_event.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> VideoState:
        self._done_event.wait(timeout)
        return self.state

    def finish(self, state: VideoState, error: Optional[Exception] = None) -> None:
        self.error = error
        self._progress.clear()
        self.transition(state)
        self._done_event.set()


class VideoRunner:
    """
    Runs one video job at a time on a background thread.

    Every frame goes through the same inpainter; any frame failure fails the
    whole video. Progress is published through a per-job ``ProgressReporter``
    that observers poll; the reporter lock is never held across an inpaint
    call.
    """

    def __init__(
        self,
        temp_files: TempFileManager,
        backend: VideoBackend,
        credential_store: Optional[CredentialStoreProtocol] = None,
        inpainter_factory: Optional[InpainterFactory] = None,
        progress_interval_frames: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._temp_files = temp_files
        self._backend = backend
        self._credential_store = credential_store
        self._inpainter_factory = inpainter_factory or create_inpainter
        self._progress_interval = max(1, progress_interval_frames)
        self._clock = clock
        self._lock = threading.Lock()
        self._job: Optional[VideoJob] = None
        self._logger = get_logger("watermark-pipeline.video")

    @property
    def current_job(self) -> Optional[VideoJob]:
        with self._lock:
            return self._job

    def start(self, video_path: Path, region: Region, options: RemovalOptions) -> VideoJob:
        """
        Start processing in the background and return immediately.

        Raises:
            UnsupportedOperationError: Cloud processing was requested
            RunnerBusyError: Another video job is still running
        """
        credential = validate_request(options, self._credential_store, MediaKind.VIDEO)
        inpainter = self._inpainter_factory(options, credential)

        with self._lock:
            if self._job is not None and self._job.is_running:
                raise RunnerBusyError("A video is already being processed")
            job = VideoJob(video_path, clock=self._clock)
            job.transition(VideoState.RUNNING)
            self._job = job

        thread = threading.Thread(
            target=self._run,
            args=(job, region, options, inpainter),
            name=f"video-{job.id[:8]}",
            daemon=True,
        )
        thread.start()
        return job

    def poll_progress(self) -> Optional[VideoProgress]:
        job = self.current_job
        return job.poll_progress() if job is not None else None

    def cancel(self) -> bool:
        job = self.current_job
        return job.cancel() if job is not None else False

    def _run(
        self,
        job: VideoJob,
        region: Region,
        options: RemovalOptions,
        inpainter: Inpainter,
    ) -> None:
        logger = configure_worker_logging()
        logger.info(f"Video job {job.id[:8]} started for {job.video_path.name}")
        try:
            job.result = self._process(job, region, options, inpainter)
        except _RunCancelled:
            logger.info(f"Video job {job.id[:8]} cancelled")
            job.finish(VideoState.CANCELLED)
        except WatermarkPipelineError as e:
            logger.error(f"Video job {job.id[:8]} failed: {e}")
            job.finish(VideoState.FAILED, e)
        except Exception as e:
            logger.error(f"Video job {job.id[:8]} failed unexpectedly: {e}", exc_info=True)
            job.finish(VideoState.FAILED, e)
        else:
            logger.info(
                f"Video job {job.id[:8]} completed: {job.result.frames_processed} frames "
                f"in {job.result.duration_seconds:.1f}s"
            )
            job.finish(VideoState.COMPLETED)

    def _process(
        self,
        job: VideoJob,
        region: Region,
        options: RemovalOptions,
        inpainter: Inpainter,
    ) -> VideoRunResult:
        reader = self._backend.open_reader(job.video_path)
        try:
            descriptor = reader.descriptor
            job.descriptor = descriptor
            clamped = validate_region(region, descriptor.width, descriptor.height)
            log_configuration(clamped, options, "video", descriptor.frame_count)
            job.progress_reporter.publish(
                compute_video_progress(0, descriptor.frame_count, 0.0)
            )

            suffix = self._backend.output_suffix(options.lossless)
            with self._temp_files.scoped(suffix, "processed_video") as output_path:
                with self._temp_files.transient(".aac", "audio") as audio_path, \
                        self._temp_files.transient(suffix, "video_no_audio") as silent_path:
                    has_audio = self._backend.extract_audio(job.video_path, audio_path)
                    target = silent_path if has_audio else output_path
                    frames = self._encode_frames(
                        job, reader, target, descriptor, clamped, options, inpainter
                    )
                    if has_audio:
                        self._backend.merge_audio(silent_path, audio_path, output_path)

                return VideoRunResult(
                    output_path=str(output_path),
                    frames_processed=frames,
                    duration_seconds=job.elapsed(),
                    original_size_bytes=job.video_path.stat().st_size,
                    processed_size_bytes=Path(output_path).stat().st_size,
                )
        finally:
            reader.close()

    def _encode_frames(
        self,
        job: VideoJob,
        reader: VideoReader,
        target: Path,
        descriptor: VideoDescriptor,
        region: Region,
        options: RemovalOptions,
        inpainter: Inpainter,
    ) -> int:
        writer = self._backend.open_writer(target, descriptor, options.lossless)
        processed = 0
        try:
            while True:
                if job.cancel_requested:
                    raise _RunCancelled()

                frame = reader.read()
                if frame is None:
                    break

                try:
                    result = check_inpainted(inpainter, frame, inpainter.inpaint(frame, region))
                except WatermarkPipelineError as e:
                    e.message = f"Frame {processed}: {e.message}"
                    raise
                writer.write(result)
                processed += 1

                if processed % self._progress_interval == 0:
                    job.progress_reporter.publish(
                        compute_video_progress(
                            processed, descriptor.frame_count, job.elapsed()
                        )
                    )
        finally:
            writer.close()

        if processed == 0:
            raise MediaIOError(f"No readable frames in {job.video_path.name}")

        job.progress_reporter.publish(
            compute_video_progress(
                processed, max(descriptor.frame_count, processed), job.elapsed()
            )
        )
        return processed
