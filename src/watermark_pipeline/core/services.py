"""Single-item removal service."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import numpy as np

from .error_handling import with_error_handling
from .exceptions import LocalInpainterError, ServiceError
from .image_utils import (
    decode_image,
    encode_image,
    read_image_size,
    resolve_output_format,
    to_data_url,
)
from .inpainters import Inpainter, create_inpainter
from .models import (
    ImageInfo,
    MediaKind,
    ProcessingMethod,
    ProcessResult,
    Region,
    RemovalOptions,
)
from .observability import LogContext
from .protocols import CredentialStoreProtocol, LoggerProtocol
from .temp_files import TempFileManager
from .validation import validate_region, validate_request

InpainterFactory = Callable[[RemovalOptions, Optional[str]], Inpainter]


@dataclass
class ProcessingContext:
    """Context for a single removal operation."""

    correlation_id: str
    start_time: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)
    log_context: LogContext = field(default_factory=LogContext)


@with_error_handling
def read_source_bytes(path: Path) -> bytes:
    return Path(path).read_bytes()


@with_error_handling
def write_output_bytes(path: Path, data: bytes) -> None:
    Path(path).write_bytes(data)


def check_inpainted(
    inpainter: Inpainter, source: np.ndarray, result: np.ndarray
) -> np.ndarray:
    """Both backends must hand back an image with the source geometry."""
    if result.shape[:2] == source.shape[:2]:
        return result
    message = (
        f"Inpainter returned {result.shape[1]}x{result.shape[0]}, "
        f"expected {source.shape[1]}x{source.shape[0]}"
    )
    if inpainter.method is ProcessingMethod.CLOUD:
        raise ServiceError(message)
    raise LocalInpainterError(message)


class ImageRemovalService:
    """Turns one (image, region, options) triple into one ProcessResult."""

    def __init__(
        self,
        temp_files: TempFileManager,
        credential_store: Optional[CredentialStoreProtocol],
        logger: LoggerProtocol,
        inpainter_factory: Optional[InpainterFactory] = None,
    ):
        self._temp_files = temp_files
        self._credential_store = credential_store
        self._logger = logger
        self._inpainter_factory = inpainter_factory or create_inpainter

    @property
    def temp_files(self) -> TempFileManager:
        return self._temp_files

    def prepare_inpainter(
        self, options: RemovalOptions, media_kind: MediaKind = MediaKind.IMAGE
    ) -> Inpainter:
        """Check preconditions and select the backend for a run."""
        credential = validate_request(options, self._credential_store, media_kind)
        return self._inpainter_factory(options, credential)

    def process(
        self,
        media_path: Path,
        region: Region,
        options: RemovalOptions,
        include_preview: bool = True,
        inpainter: Optional[Inpainter] = None,
    ) -> ProcessResult:
        """
        Remove the region from one image.

        Args:
            media_path: Source image
            region: Selection in source-pixel coordinates
            options: Removal options
            include_preview: Attach an inline data URL of the output
            inpainter: Backend already selected for the run; selected from
                ``options`` when omitted

        Returns:
            ProcessResult pointing at a scratch file registered with the
            temp-file manager

        Raises:
            ValidationError: Bad region, options or missing credential
            MediaIOError: Source unreadable or output not writable
            InpainterError: The backend failed
        """
        media_path = Path(media_path)
        log_context = LogContext(
            operation="process_image",
            component="image_removal_service",
        ).with_metadata(
            source=media_path.name,
            method=options.method.value,
            lossless=options.lossless,
        )
        context = ProcessingContext(
            correlation_id=log_context.correlation_id, log_context=log_context
        )

        if inpainter is None:
            inpainter = self.prepare_inpainter(options)

        try:
            self._logger.debug("Reading source", log_context.with_operation("read_source"))
            source_bytes = read_source_bytes(media_path)
            decoded = decode_image(source_bytes)

            clamped = validate_region(region, decoded.width, decoded.height)
            if clamped != region:
                self._logger.info(
                    "Region clamped to image bounds",
                    log_context,
                    region=f"{clamped.x},{clamped.y} {clamped.width}x{clamped.height}",
                )

            self._logger.debug(
                f"Inpainting {decoded.width}x{decoded.height} image",
                log_context.with_operation("inpaint"),
            )
            pixels = check_inpainted(
                inpainter, decoded.pixels, inpainter.inpaint(decoded.pixels, clamped)
            )

            output_format = resolve_output_format(decoded.format, options.lossless)
            output_bytes = encode_image(pixels, output_format, decoded.alpha)

            prefix = "cloud_processed" if inpainter.method is ProcessingMethod.CLOUD else "processed"
            with self._temp_files.scoped(f".{output_format.extension}", prefix) as output_path:
                write_output_bytes(output_path, output_bytes)

            result = ProcessResult(
                output_path=str(output_path),
                preview_data_url=(
                    to_data_url(output_bytes, output_format.format)
                    if include_preview
                    else None
                ),
                original_size_bytes=len(source_bytes),
                processed_size_bytes=len(output_bytes),
                output_format=output_format.format,
            )
        except Exception as e:
            error_context = log_context.with_metadata(
                error=str(e), error_type=type(e).__name__
            )
            self._logger.error("Watermark removal failed", error_context)
            raise

        self._logger.info(
            "Successfully processed image",
            log_context,
            processing_time_ms=round((time.time() - context.start_time) * 1000, 1),
            original_bytes=result.original_size_bytes,
            processed_bytes=result.processed_size_bytes,
        )
        return result

    def get_image_info(self, media_path: Path) -> ImageInfo:
        """Dimensions and format of a source image."""
        width, height, image_format = read_image_size(read_source_bytes(media_path))
        return ImageInfo(
            path=str(media_path), width=width, height=height, format=image_format
        )

    def load_preview(self, media_path: Path) -> str:
        """Inline data URL of an untouched source image."""
        data = read_source_bytes(media_path)
        _, _, image_format = read_image_size(data)
        return to_data_url(data, image_format)
