"""Runtime settings for the watermark pipeline."""

import os
import tempfile
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .exceptions import ConfigurationError

DEFAULT_CLOUD_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-2.5-flash-image:generateContent"
)


def default_scratch_dir() -> Path:
    return Path(tempfile.gettempdir()) / "watermark-remover"


def default_credentials_path() -> Path:
    return Path.home() / ".config" / "watermark-pipeline" / "settings.json"


class PipelineSettings(BaseModel):
    """Configuration shared by every component of the engine."""

    scratch_dir: Path = Field(default_factory=default_scratch_dir)
    credentials_path: Path = Field(default_factory=default_credentials_path)
    cloud_endpoint: str = DEFAULT_CLOUD_ENDPOINT
    cloud_timeout_seconds: float = Field(default=120.0, gt=0)
    progress_interval_frames: int = Field(default=1, ge=1)
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """
        Build settings from environment variables.

        Environment Variables:
            WATERMARK_SCRATCH_DIR: Directory for intermediate output files
            WATERMARK_CREDENTIALS_PATH: JSON file holding the cloud API key
            WATERMARK_CLOUD_ENDPOINT: Cloud inpainting endpoint URL
            WATERMARK_CLOUD_TIMEOUT: Cloud request timeout in seconds
            WATERMARK_PROGRESS_INTERVAL: Frames between video progress updates
            LOG_LEVEL: Logging level

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        mapping = {
            "scratch_dir": "WATERMARK_SCRATCH_DIR",
            "credentials_path": "WATERMARK_CREDENTIALS_PATH",
            "cloud_endpoint": "WATERMARK_CLOUD_ENDPOINT",
            "cloud_timeout_seconds": "WATERMARK_CLOUD_TIMEOUT",
            "progress_interval_frames": "WATERMARK_PROGRESS_INTERVAL",
            "log_level": "LOG_LEVEL",
        }
        values = {field: env[var] for field, var in mapping.items() if env.get(var)}

        try:
            return cls(**values)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc
