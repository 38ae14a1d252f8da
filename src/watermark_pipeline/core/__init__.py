"""Core utilities and shared components for the watermark pipeline."""

from .logging_config import (
    configure_worker_logging,
    get_logger,
    set_log_level,
    setup_logger,
)
from .exceptions import (
    ErrorKind,
    WatermarkPipelineError,
    ValidationError,
    MissingCredentialError,
    UnsupportedOperationError,
    MediaIOError,
    InpainterError,
    LocalInpainterError,
    CloudInpainterError,
    UnauthorizedError,
    RateLimitedError,
    NetworkError,
    ServiceError,
    ConfigurationError,
    RunnerBusyError,
    InvalidStateTransition,
)
from .models import (
    BatchItem,
    BatchProgress,
    BatchStatus,
    ImageInfo,
    InpaintAlgorithm,
    ProcessingMethod,
    ProcessResult,
    Region,
    RemovalOptions,
    VideoDescriptor,
    VideoProgress,
    VideoRunResult,
    VideoState,
)
from .validation import validate_region, validate_request

__all__ = [
    "setup_logger",
    "get_logger",
    "configure_worker_logging",
    "set_log_level",
    "ErrorKind",
    "WatermarkPipelineError",
    "ValidationError",
    "MissingCredentialError",
    "UnsupportedOperationError",
    "MediaIOError",
    "InpainterError",
    "LocalInpainterError",
    "CloudInpainterError",
    "UnauthorizedError",
    "RateLimitedError",
    "NetworkError",
    "ServiceError",
    "ConfigurationError",
    "RunnerBusyError",
    "InvalidStateTransition",
    "BatchItem",
    "BatchProgress",
    "BatchStatus",
    "ImageInfo",
    "InpaintAlgorithm",
    "ProcessingMethod",
    "ProcessResult",
    "Region",
    "RemovalOptions",
    "VideoDescriptor",
    "VideoProgress",
    "VideoRunResult",
    "VideoState",
    "validate_region",
    "validate_request",
]
