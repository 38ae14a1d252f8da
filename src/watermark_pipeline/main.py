"""Main module for the watermark pipeline CLI."""

import sys
import time
import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core import get_logger, set_log_level
from .core.exceptions import WatermarkPipelineError
from .core.factories import EngineFactory, WatermarkRemovalEngine
from .core.models import (
    BatchItem,
    BatchStatus,
    InpaintAlgorithm,
    ProcessingMethod,
    Region,
    RemovalOptions,
    VideoState,
)
from .processors import BatchRunner


def parse_region(value: str) -> Region:
    """Parse ``x,y,width,height`` into a Region."""
    parts = value.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("region must be x,y,width,height")
    try:
        x, y, width, height = (int(p.strip()) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError("region values must be integers")
    if x < 0 or y < 0:
        raise argparse.ArgumentTypeError("region x and y must be non-negative")
    return Region(x=x, y=y, width=width, height=height)


def _add_removal_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--region", type=parse_region, required=True,
        help="Watermark rectangle as x,y,width,height in source pixels",
    )
    parser.add_argument(
        "--method", choices=[m.value for m in ProcessingMethod], default="local",
        help="Local OpenCV inpainting or cloud AI inpainting (default: local)",
    )
    parser.add_argument(
        "--algorithm", choices=[a.value for a in InpaintAlgorithm], default="telea",
        help="Local inpainting algorithm (default: telea)",
    )
    parser.add_argument(
        "--dilate", type=int, default=3, help="Mask dilation in pixels, 0-10 (default: 3)"
    )
    parser.add_argument(
        "--radius", type=float, default=5.0, help="Inpaint radius, 1-15 (default: 5)"
    )
    parser.add_argument(
        "--lossless", action="store_true", help="Force a lossless output format"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watermark-pipeline",
        description="Watermark Pipeline - remove a rectangular watermark from images and videos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Remove a watermark from one image
  watermark-pipeline image photo.jpg --region 10,10,120,40 --output clean.jpg

  # Same region on many files, lossless output
  watermark-pipeline batch a.jpg b.jpg --region 10,10,120,40 --output-dir out --lossless

  # Process a video
  watermark-pipeline video clip.mp4 --region 600,20,100,30 --output clean.mp4
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    image_parser = subparsers.add_parser("image", help="Process a single image")
    image_parser.add_argument("input", type=Path, help="Source image")
    image_parser.add_argument("--output", type=Path, required=True, help="Destination file")
    _add_removal_arguments(image_parser)

    batch_parser = subparsers.add_parser("batch", help="Process many images with one region")
    batch_parser.add_argument("inputs", type=Path, nargs="+", help="Source images")
    batch_parser.add_argument(
        "--output-dir", type=Path, required=True, help="Directory for processed files"
    )
    _add_removal_arguments(batch_parser)

    video_parser = subparsers.add_parser("video", help="Process a video frame by frame")
    video_parser.add_argument("input", type=Path, help="Source video")
    video_parser.add_argument("--output", type=Path, required=True, help="Destination file")
    video_parser.add_argument(
        "--poll-interval", type=float, default=0.5,
        help="Seconds between progress reports (default: 0.5)",
    )
    _add_removal_arguments(video_parser)

    subparsers.add_parser("cleanup", help="Remove leftover scratch files")

    key_parser = subparsers.add_parser("api-key", help="Manage the cloud API key")
    key_parser.add_argument("action", choices=["set", "clear", "status", "test"])
    key_parser.add_argument("key", nargs="?", help="API key (for 'set')")

    subparsers.add_parser("version", help="Show version information")
    return parser


def options_from_args(args: argparse.Namespace) -> RemovalOptions:
    return RemovalOptions(
        algorithm=InpaintAlgorithm(args.algorithm),
        dilate_pixels=args.dilate,
        inpaint_radius=args.radius,
        method=ProcessingMethod(args.method),
        lossless=args.lossless,
    )


def _with_extension(destination: Path, source_output: str) -> Path:
    """Keep the user's file name but use the extension of the actual output."""
    return destination.with_suffix(Path(source_output).suffix)


def run_image(engine: WatermarkRemovalEngine, args: argparse.Namespace) -> int:
    logger = get_logger("watermark-pipeline.cli")
    result = engine.process_one(args.input, args.region, options_from_args(args))
    destination = engine.save_output(
        Path(result.output_path), _with_extension(args.output, result.output_path)
    )
    logger.info(
        f"Saved {destination} ({result.original_size_bytes} -> "
        f"{result.processed_size_bytes} bytes, {result.size_reduction_percent}% smaller)"
    )
    return 0


def run_batch(engine: WatermarkRemovalEngine, args: argparse.Namespace) -> int:
    logger = get_logger("watermark-pipeline.cli")
    items = [BatchItem.from_path(path) for path in args.inputs]

    def on_update(item_id: str, changes: dict) -> None:
        if changes.get("status") is BatchStatus.FAILED:
            logger.warning(f"Failed {item_id[:8]}: {changes.get('error')}")

    engine.run_batch(items, args.region, options_from_args(args), on_update=on_update)

    taken = set()
    for item in items:
        if item.status is BatchStatus.COMPLETED and item.processed_path:
            destination = _with_extension(
                args.output_dir / item.display_name, item.processed_path
            )
            # Same file name from different folders
            if destination in taken:
                destination = destination.with_name(
                    f"{destination.stem}_{item.id[:8]}{destination.suffix}"
                )
            taken.add(destination)
            engine.save_output(Path(item.processed_path), destination)

    failed = [item for item in items if item.status is BatchStatus.FAILED]
    for item in failed:
        logger.error(f"{item.display_name}: {item.error}")

    summary = BatchRunner.summarize(items)
    logger.info(
        f"Batch finished: {summary['completed']} completed, {summary['failed']} failed"
    )
    return 1 if failed else 0


def run_video(engine: WatermarkRemovalEngine, args: argparse.Namespace) -> int:
    logger = get_logger("watermark-pipeline.cli")
    job = engine.start_video(args.input, args.region, options_from_args(args))
    try:
        while job.is_running:
            time.sleep(args.poll_interval)
            progress = engine.poll_video()
            if progress is not None:
                eta = (
                    f", ~{progress.estimated_remaining_seconds:.0f}s left"
                    if progress.estimated_remaining_seconds is not None
                    else ""
                )
                logger.info(
                    f"Frame {progress.current_frame}/{progress.total_frames} "
                    f"({progress.percent:.1f}%{eta})"
                )
    except KeyboardInterrupt:
        logger.warning("Cancelling video processing...")
        engine.cancel_video()

    state = job.wait()
    if state is VideoState.COMPLETED and job.result is not None:
        destination = engine.save_output(
            Path(job.result.output_path),
            _with_extension(args.output, job.result.output_path),
        )
        logger.info(f"Saved {destination} ({job.result.frames_processed} frames)")
        return 0
    if state is VideoState.CANCELLED:
        logger.warning("Video processing cancelled")
        return 130
    logger.error(f"Video processing failed: {job.error}")
    return 1


def run_api_key(engine: WatermarkRemovalEngine, args: argparse.Namespace) -> int:
    if args.action == "set":
        if not args.key:
            print("An API key is required for 'set'")
            return 2
        engine.set_api_key(args.key)
        print("API key saved")
    elif args.action == "clear":
        engine.clear_api_key()
        print("API key cleared")
    elif args.action == "status":
        print("API key configured" if engine.has_api_key() else "API key not configured")
    else:
        engine.test_cloud_connection()
        print("Cloud connection OK")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the ``watermark-pipeline`` command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Watermark Pipeline CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.debug:
        set_log_level("DEBUG")
    logger = get_logger("watermark-pipeline.cli")

    handlers = {
        "image": run_image,
        "batch": run_batch,
        "video": run_video,
        "api-key": run_api_key,
    }

    try:
        with EngineFactory.create_engine(cleanup_on_exit=False) as engine:
            if args.command == "cleanup":
                # Scratch files were already removed when the engine started
                print("Scratch directory cleaned")
                exit_code = 0
            else:
                exit_code = handlers[args.command](engine, args)
    except WatermarkPipelineError as e:
        logger.error(f"Error [{e.kind.value}]: {e}")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
