"""Custom exceptions for the watermark pipeline.

Every error carries a machine-checkable ``kind`` next to its human-readable
message, so a UI can show the message while callers and tests branch on the
kind.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Machine-checkable error categories."""

    VALIDATION = "validation"
    IO = "io"
    LOCAL_INPAINTER = "local_inpainter"
    CLOUD_UNAUTHORIZED = "cloud_unauthorized"
    CLOUD_RATE_LIMITED = "cloud_rate_limited"
    CLOUD_NETWORK = "cloud_network"
    CLOUD_SERVICE = "cloud_service"
    CONFIGURATION = "configuration"
    STATE = "state"


class WatermarkPipelineError(Exception):
    """Base exception for all watermark pipeline errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        return self.message


class ValidationError(WatermarkPipelineError):
    """Bad region or options. The caller's fault; never retried."""

    kind = ErrorKind.VALIDATION


class MissingCredentialError(ValidationError):
    """Cloud processing was requested without a stored API key."""


class UnsupportedOperationError(ValidationError):
    """The requested media/method combination is not supported."""


class MediaIOError(WatermarkPipelineError):
    """Read, write or codec failure."""

    kind = ErrorKind.IO


class InpainterError(WatermarkPipelineError):
    """Base class for failures raised by an inpainting backend."""


class LocalInpainterError(InpainterError):
    """The local inpainting algorithm failed."""

    kind = ErrorKind.LOCAL_INPAINTER


class CloudInpainterError(InpainterError):
    """Base class for remote inpainting service failures."""

    kind = ErrorKind.CLOUD_SERVICE

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code


class UnauthorizedError(CloudInpainterError):
    """The API key was rejected."""

    kind = ErrorKind.CLOUD_UNAUTHORIZED


class RateLimitedError(CloudInpainterError):
    """The service's rate limit was hit."""

    kind = ErrorKind.CLOUD_RATE_LIMITED


class NetworkError(CloudInpainterError):
    """The service could not be reached."""

    kind = ErrorKind.CLOUD_NETWORK


class ServiceError(CloudInpainterError):
    """The service answered with an error or an unusable response."""

    kind = ErrorKind.CLOUD_SERVICE


class ConfigurationError(WatermarkPipelineError):
    """Error raised for invalid configuration options."""

    kind = ErrorKind.CONFIGURATION


class RunnerBusyError(WatermarkPipelineError):
    """A video job is already running."""

    kind = ErrorKind.STATE


class InvalidStateTransition(WatermarkPipelineError):
    """A state machine was asked to make a transition it does not allow."""

    kind = ErrorKind.STATE
