"""Watermark removal pipeline for images, batches and videos."""

__version__ = "0.1.0"
