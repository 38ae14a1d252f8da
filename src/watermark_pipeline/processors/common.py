"""Common logging helpers shared by the batch and video runners."""

from typing import Dict, Iterable

from ..core.logging_config import get_logger
from ..core.models import BatchItem, BatchStatus, Region, RemovalOptions, ProcessingMethod


def describe_options(options: RemovalOptions) -> str:
    if options.method is ProcessingMethod.CLOUD:
        description = "Cloud AI"
    else:
        description = (
            f"Local {options.algorithm.value.replace('_', ' ').title()} "
            f"(dilate={options.dilate_pixels}px, radius={options.inpaint_radius})"
        )
    if options.lossless:
        description += " + lossless output"
    return description


def log_configuration(
    region: Region, options: RemovalOptions, runner_name: str, total: int
) -> None:
    """Log run configuration."""
    logger = get_logger("watermark-pipeline.processor")
    logger.info("=" * 80)
    logger.info(f"{runner_name.upper()} WATERMARK REMOVAL")
    logger.info("=" * 80)
    logger.info("CONFIGURATION:")
    logger.info(
        f"  Region:        ({region.x}, {region.y}) {region.width}x{region.height}"
    )
    logger.info(f"  Method:        {describe_options(options)}")
    logger.info(f"  Units of work: {total}")
    logger.info("=" * 80)


def count_batch_results(items: Iterable[BatchItem]) -> Dict[BatchStatus, int]:
    """
    Count items per status.

    Args:
        items: Batch items

    Returns:
        Mapping with an entry for every status
    """
    counts = {status: 0 for status in BatchStatus}
    for item in items:
        counts[item.status] += 1
    return counts


def log_final_statistics(
    total_time: float, total_items: int, processed_count: int, error_count: int,
    skipped_count: int = 0,
) -> None:
    """Log final processing statistics."""
    logger = get_logger("watermark-pipeline.processor")
    overall_rate = processed_count / total_time if total_time > 0 else 0

    logger.info("=" * 80)
    logger.info("PROCESSING COMPLETED")
    logger.info("=" * 80)
    logger.info(f"Total execution time: {total_time:.1f}s")
    logger.info(f"Overall processing rate: {overall_rate:.2f} items/sec")
    logger.info(f"Items in batch: {total_items}")
    logger.info(f"Successfully processed: {processed_count}")
    logger.info(f"Errors encountered: {error_count}")
    if skipped_count:
        logger.info(f"Skipped (already finished): {skipped_count}")
    logger.info("=" * 80)
