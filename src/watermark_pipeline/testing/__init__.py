"""Testing utilities and fakes for the watermark pipeline."""

from .fakes import (
    FakeCloudInpainter,
    FakeLocalInpainter,
    FakeLogger,
    FakeVideoBackend,
    FakeVideoReader,
    FakeVideoWriter,
    InMemoryCredentialStore,
    create_test_image,
    write_test_image,
    write_test_video_placeholder,
)

__all__ = [
    "FakeCloudInpainter",
    "FakeLocalInpainter",
    "FakeLogger",
    "FakeVideoBackend",
    "FakeVideoReader",
    "FakeVideoWriter",
    "InMemoryCredentialStore",
    "create_test_image",
    "write_test_image",
    "write_test_video_placeholder",
]
