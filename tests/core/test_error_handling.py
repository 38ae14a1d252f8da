# tests/core/test_error_handling.py

import pytest
from unittest import mock

import cv2
from PIL import Image
from PIL import UnidentifiedImageError as PILUnidentifiedImageError

from watermark_pipeline.core.exceptions import (
    LocalInpainterError,
    MediaIOError,
    ServiceError,
    ValidationError,
)
from watermark_pipeline.core.error_handling import (
    with_error_handling,
    with_inpainter_errors,
    BatchOperationContextManager,
)


@pytest.fixture
def mock_logger():
    """Fixture to mock the logger used by the decorators."""
    # The decorators use logging.getLogger(func.__module__ + '.' + func.__name__)
    with mock.patch('watermark_pipeline.core.error_handling.logging') as mock_logging:
        mock_log_instance = mock.Mock()
        mock_logging.getLogger.return_value = mock_log_instance
        yield mock_log_instance


# --- Tests for @with_error_handling decorator ---

def test_with_error_handling_passes_result_through(mock_logger):
    """Test that a successful call is untouched."""
    @with_error_handling
    def func_succeeds():
        return 42

    assert func_succeeds() == 42
    mock_logger.error.assert_not_called()


def test_with_error_handling_pipeline_errors_pass_through(mock_logger):
    """Test that pipeline errors are neither wrapped nor logged."""
    @with_error_handling
    def func_raising_validation():
        raise ValidationError("bad region")

    with pytest.raises(ValidationError, match="bad region"):
        func_raising_validation()
    mock_logger.error.assert_not_called()


def test_with_error_handling_wraps_pil_error(mock_logger):
    """Test wrapping PILUnidentifiedImageError into MediaIOError."""
    @with_error_handling
    def func_raising_pil_error():
        raise PILUnidentifiedImageError("Cannot identify image file")

    with pytest.raises(MediaIOError) as excinfo:
        func_raising_pil_error()

    assert "Unsupported or corrupt image" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, PILUnidentifiedImageError)
    mock_logger.error.assert_called_once()


def test_with_error_handling_wraps_decompression_bomb(mock_logger):
    """Test wrapping Pillow's oversized image error into MediaIOError."""
    @with_error_handling
    def decode_huge():
        raise Image.DecompressionBombError("Image size exceeds limit")

    with pytest.raises(MediaIOError) as excinfo:
        decode_huge()

    assert "too large" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, Image.DecompressionBombError)


def test_with_error_handling_wraps_os_error(mock_logger):
    """Test wrapping file system errors into MediaIOError."""
    @with_error_handling
    def read_source():
        raise FileNotFoundError("No such file: missing.png")

    with pytest.raises(MediaIOError) as excinfo:
        read_source()

    assert "read_source failed" in str(excinfo.value)
    assert excinfo.value.kind.value == "io"
    args, kwargs = mock_logger.error.call_args
    assert kwargs.get('exc_info') is True


def test_with_error_handling_wraps_cv2_error(mock_logger):
    """Test wrapping OpenCV errors into MediaIOError."""
    @with_error_handling
    def write_frame():
        raise cv2.error("codec exploded")

    with pytest.raises(MediaIOError):
        write_frame()


def test_with_error_handling_reraises_unmapped_exception(mock_logger):
    """Test that unmapped exceptions are re-raised by default."""
    class CustomNonMappedError(Exception):
        pass

    @with_error_handling
    def func_raising_unmapped_error():
        raise CustomNonMappedError("This one is not mapped.")

    with pytest.raises(CustomNonMappedError):
        func_raising_unmapped_error()

    mock_logger.error.assert_called_once()
    args, kwargs = mock_logger.error.call_args
    assert "This one is not mapped." in args[0]
    assert kwargs.get('exc_info') is True


# --- Tests for @with_inpainter_errors decorator ---

def test_with_inpainter_errors_wraps_anything(mock_logger):
    """Test that unexpected failures become LocalInpainterError."""
    @with_inpainter_errors
    def inpaint():
        raise RuntimeError("bad mask")

    with pytest.raises(LocalInpainterError) as excinfo:
        inpaint()

    assert "bad mask" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_with_inpainter_errors_keeps_pipeline_errors(mock_logger):
    """Test that pipeline errors keep their kind."""
    @with_inpainter_errors
    def inpaint():
        raise ServiceError("remote failure")

    with pytest.raises(ServiceError):
        inpaint()


# --- Tests for BatchOperationContextManager ---

def test_batch_context_manager_no_errors():
    """Test a clean batch run logs success."""
    with mock.patch('watermark_pipeline.core.error_handling.logging') as mock_logging:
        mock_log_instance = mock.Mock()
        mock_logging.getLogger.return_value = mock_log_instance

        with BatchOperationContextManager(operation_name="Test Batch") as manager:
            pass

        assert manager.errors == []
        mock_log_instance.info.assert_any_call("Starting Test Batch.")
        mock_log_instance.info.assert_any_call("Test Batch completed successfully.")


def test_batch_context_manager_collects_errors():
    """Test that per-item errors are collected and summarized."""
    with mock.patch('watermark_pipeline.core.error_handling.logging') as mock_logging:
        mock_log_instance = mock.Mock()
        mock_logging.getLogger.return_value = mock_log_instance

        with BatchOperationContextManager(operation_name="Test Batch") as manager:
            manager.add_error("Corrupt file", item_identifier="a.jpg")
            manager.add_error(MediaIOError("Missing"), item_identifier="b.jpg")

        assert manager.errors == [
            {"item": "a.jpg", "error": "Corrupt file"},
            {"item": "b.jpg", "error": "Missing"},
        ]
        mock_log_instance.warning.assert_called_once_with(
            "Test Batch completed with 2 error(s)."
        )
        assert mock_log_instance.error.call_count == 2


def test_batch_context_manager_does_not_swallow():
    """Test that an exception inside the block propagates."""
    with pytest.raises(RuntimeError):
        with BatchOperationContextManager(operation_name="Test Batch"):
            raise RuntimeError("stop")
