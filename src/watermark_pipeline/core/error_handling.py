# src/watermark_pipeline/core/error_handling.py

import functools
import logging

import cv2
from PIL import Image
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from .exceptions import LocalInpainterError, MediaIOError, WatermarkPipelineError


def with_error_handling(func):
    """
    A decorator to wrap I/O and codec boundaries with standardized error handling.

    Pipeline errors pass through untouched. File system, image identification,
    oversized image and OpenCV failures are logged and re-raised as
    ``MediaIOError`` so callers only ever see the pipeline's taxonomy.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except WatermarkPipelineError:
            raise
        except Exception as e:
            logger.error(
                f"Error in '{func.__name__}': {e}",
                exc_info=True
            )
            if isinstance(e, Image.DecompressionBombError):
                raise MediaIOError(f"Image too large to decode safely: {e}") from e
            if isinstance(e, PILUnidentifiedImageError):
                raise MediaIOError(f"Unsupported or corrupt image: {e}") from e
            if isinstance(e, (OSError, cv2.error)):
                raise MediaIOError(f"{func.__name__} failed: {e}") from e
            raise
    return wrapper


def with_inpainter_errors(func):
    """
    Decorator for local inpainting calls: any non-pipeline failure becomes a
    ``LocalInpainterError``.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger(func.__module__ + '.' + func.__name__)
        try:
            return func(*args, **kwargs)
        except WatermarkPipelineError:
            raise
        except Exception as e:
            logger.error(f"Inpainting failed in '{func.__name__}': {e}", exc_info=True)
            raise LocalInpainterError(f"Inpainting failed: {e}") from e
    return wrapper


class BatchOperationContextManager:
    """
    Context manager for batch operations to collect and summarize errors.
    """
    def __init__(self, operation_name="Batch Operation"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} error(s)."
            )
            for i, error_detail in enumerate(self.errors):
                item_identifier = error_detail.get('item', 'Unknown item')
                error_message = error_detail.get('error', 'Unknown error')
                self.logger.error(
                    f"  Error {i+1}/{len(self.errors)} for item '{item_identifier}': {error_message}"
                )
        elif exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Never swallow exceptions raised inside the block
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown item"):
        """
        Call this method within the 'with' block to report an error for a specific item.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): A string identifying the item that failed (e.g., file name).
        """
        self.errors.append({"item": item_identifier, "error": str(error_message)})
        self.logger.debug(f"Error added for item '{item_identifier}' in {self.operation_name}: {error_message}")
