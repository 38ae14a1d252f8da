"""Factory classes and the engine facade exposed to UI and CLI layers."""

import atexit
import shutil
from pathlib import Path
from typing import Callable, List, Optional

import cv2

from .config import PipelineSettings
from .credentials import JsonCredentialStore
from .error_handling import with_error_handling
from .exceptions import MediaIOError, MissingCredentialError
from .image_utils import OutputFormat, encode_image, to_data_url
from .inpainters import CloudInpainter, Inpainter, create_inpainter
from .models import (
    BatchItem,
    ImageInfo,
    ProcessResult,
    Region,
    RemovalOptions,
    VideoDescriptor,
    VideoProgress,
)
from .observability import create_logger
from .protocols import CredentialStoreProtocol, LoggerProtocol, VideoBackend
from .services import ImageRemovalService, InpainterFactory
from .temp_files import TempFileManager
from .video_io import OpenCVVideoBackend
from ..processors.batch import BatchRunner, ProgressCallback, UpdateCallback
from ..processors.video import VideoJob, VideoRunner


class WatermarkRemovalEngine:
    """
    Entry point for UI and CLI layers.

    Output files live in the scratch directory until the caller copies them
    with :meth:`save_output`; :meth:`cleanup_all` (also run on :meth:`close`)
    removes them.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        temp_files: TempFileManager,
        credential_store: CredentialStoreProtocol,
        service: ImageRemovalService,
        batch_runner: BatchRunner,
        video_runner: VideoRunner,
        video_backend: VideoBackend,
        logger: LoggerProtocol,
    ):
        self.settings = settings
        self.temp_files = temp_files
        self.credential_store = credential_store
        self._service = service
        self._batch_runner = batch_runner
        self._video_runner = video_runner
        self._video_backend = video_backend
        self._logger = logger
        self._exit_hook: Optional[Callable[[], int]] = None

    def __enter__(self) -> "WatermarkRemovalEngine":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Images

    def process_one(
        self, media_path: Path, region: Region, options: Optional[RemovalOptions] = None
    ) -> ProcessResult:
        return self._service.process(Path(media_path), region, options or RemovalOptions())

    def get_image_info(self, media_path: Path) -> ImageInfo:
        return self._service.get_image_info(Path(media_path))

    def load_image_preview(self, media_path: Path) -> str:
        return self._service.load_preview(Path(media_path))

    # Batches

    def run_batch(
        self,
        items: List[BatchItem],
        region: Region,
        options: Optional[RemovalOptions] = None,
        on_update: Optional[UpdateCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._batch_runner.run(
            items, region, options or RemovalOptions(), on_update, on_progress
        )

    # Videos

    def start_video(
        self, video_path: Path, region: Region, options: Optional[RemovalOptions] = None
    ) -> VideoJob:
        return self._video_runner.start(Path(video_path), region, options or RemovalOptions())

    def poll_video(self) -> Optional[VideoProgress]:
        return self._video_runner.poll_progress()

    def cancel_video(self) -> bool:
        return self._video_runner.cancel()

    def get_video_info(self, video_path: Path) -> VideoDescriptor:
        reader = self._video_backend.open_reader(Path(video_path))
        try:
            return reader.descriptor
        finally:
            reader.close()

    def extract_video_frame(
        self, video_path: Path, output_path: Optional[Path] = None
    ) -> str:
        """
        PNG data URL of the first frame, for drawing the selection.

        The PNG is also written to ``output_path`` when one is given.
        """
        reader = self._video_backend.open_reader(Path(video_path))
        try:
            frame = reader.read()
        finally:
            reader.close()
        if frame is None:
            raise MediaIOError(f"Failed to read first frame of {Path(video_path).name}")

        png_bytes = encode_image(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB), OutputFormat("PNG"))
        if output_path is not None:
            _write_bytes(Path(output_path), png_bytes)
        return to_data_url(png_bytes, "PNG")

    # Results and scratch files

    @with_error_handling
    def save_output(self, scratch_path: Path, destination: Path) -> Path:
        """Copy a scratch output to the location the user picked."""
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(scratch_path, destination)
        self._logger.info(f"Saved {Path(scratch_path).name} to {destination}")
        return destination

    def cleanup_all(self) -> int:
        return self.temp_files.cleanup_all()

    def close(self) -> None:
        job = self._video_runner.current_job
        if job is not None and job.is_running:
            job.cancel()
            job.wait(timeout=30)
        self.cleanup_all()
        if self._exit_hook is not None:
            atexit.unregister(self._exit_hook)
            self._exit_hook = None

    def register_exit_cleanup(self) -> None:
        """Clean the scratch directory at interpreter exit unless closed first."""
        if self._exit_hook is None:
            self._exit_hook = self.temp_files.cleanup_all
            atexit.register(self._exit_hook)

    # Cloud credential

    def has_api_key(self) -> bool:
        return bool(self.credential_store.get())

    def set_api_key(self, key: str) -> None:
        self.credential_store.set(key)

    def clear_api_key(self) -> None:
        self.credential_store.clear()

    def test_cloud_connection(self) -> bool:
        credential = self.credential_store.get()
        if not credential:
            raise MissingCredentialError("API key not configured")
        client = CloudInpainter(
            credential, self.settings.cloud_endpoint, self.settings.cloud_timeout_seconds
        )
        return client.test_connection()


@with_error_handling
def _write_bytes(path: Path, data: bytes) -> None:
    Path(path).write_bytes(data)


class EngineFactory:
    """Factory for creating a fully wired engine."""

    @staticmethod
    def create_engine(
        settings: Optional[PipelineSettings] = None,
        credential_store: Optional[CredentialStoreProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        inpainter_factory: Optional[InpainterFactory] = None,
        video_backend: Optional[VideoBackend] = None,
        cleanup_on_exit: bool = True,
    ) -> WatermarkRemovalEngine:
        """
        Create an engine; any dependency not provided gets its default.

        The scratch directory is cleaned at creation so orphans from an
        earlier session are removed.
        """
        if settings is None:
            settings = PipelineSettings.from_env()

        if logger is None:
            logger = create_logger("watermark-pipeline.engine", settings.log_level)

        if credential_store is None:
            credential_store = JsonCredentialStore(settings.credentials_path)

        if inpainter_factory is None:
            def inpainter_factory(
                options: RemovalOptions, credential: Optional[str]
            ) -> Inpainter:
                return create_inpainter(
                    options,
                    credential,
                    endpoint=settings.cloud_endpoint,
                    timeout=settings.cloud_timeout_seconds,
                )

        if video_backend is None:
            video_backend = OpenCVVideoBackend()

        temp_files = TempFileManager(settings.scratch_dir)
        temp_files.cleanup_all()

        service = ImageRemovalService(
            temp_files, credential_store, logger, inpainter_factory
        )
        engine = WatermarkRemovalEngine(
            settings=settings,
            temp_files=temp_files,
            credential_store=credential_store,
            service=service,
            batch_runner=BatchRunner(service),
            video_runner=VideoRunner(
                temp_files,
                video_backend,
                credential_store,
                inpainter_factory,
                progress_interval_frames=settings.progress_interval_frames,
            ),
            video_backend=video_backend,
            logger=logger,
        )

        if cleanup_on_exit:
            engine.register_exit_cleanup()
        return engine
