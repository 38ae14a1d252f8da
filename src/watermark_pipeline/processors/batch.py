"""Batch runner - applies one region/options pair to many files, one at a time."""

import time
from typing import Any, Callable, Dict, List, Optional

from ..core.error_handling import BatchOperationContextManager
from ..core.logging_config import get_logger
from ..core.models import (
    BatchItem,
    BatchProgress,
    BatchStatus,
    Region,
    RemovalOptions,
)
from ..core.services import ImageRemovalService
from .common import count_batch_results, log_configuration, log_final_statistics

UpdateCallback = Callable[[str, Dict[str, Any]], None]
ProgressCallback = Callable[[Optional[BatchProgress]], None]


class BatchRunner:
    """
    Sequences the removal service over an ordered list of files.

    Items already ``COMPLETED`` or ``FAILED`` are skipped, so a partially
    run batch can be resumed. A failing item is marked ``FAILED`` and the
    run moves on. Items are processed strictly one after another: only one
    full-resolution image is held in memory and the cloud backend never
    sees concurrent requests.
    """

    def __init__(self, service: ImageRemovalService):
        self._service = service
        self._logger = get_logger("watermark-pipeline.batch")

    def run(
        self,
        items: List[BatchItem],
        region: Region,
        options: RemovalOptions,
        on_update: Optional[UpdateCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Process every eligible item in list order.

        Args:
            items: Batch items, mutated in place as they change status
            region: Selection applied unchanged to every file
            options: Removal options applied to every file
            on_update: Called as ``on_update(item_id, changed_fields)`` on every
                status change
            on_progress: Called with a ``BatchProgress`` before each item and
                with ``None`` once the run is over

        Raises:
            ValidationError: Preconditions failed (e.g. cloud without API key);
                no item is touched in that case
        """
        inpainter = self._service.prepare_inpainter(options)
        total = len(items)
        log_configuration(region, options, "batch", total)
        start_time = time.time()
        skipped = 0

        def update(item: BatchItem, **changes: Any) -> None:
            for name, value in changes.items():
                setattr(item, name, value)
            if on_update is not None:
                on_update(item.id, dict(changes))

        try:
            with BatchOperationContextManager(
                operation_name=f"Batch watermark removal ({total} files)"
            ) as batch_manager:
                for index, item in enumerate(items, start=1):
                    if item.status.is_terminal:
                        skipped += 1
                        self._logger.debug(
                            f"Skipping {item.display_name}: already {item.status.value}"
                        )
                        continue

                    if on_progress is not None:
                        on_progress(
                            BatchProgress(
                                current_index=index,
                                total_count=total,
                                current_name=item.display_name,
                            )
                        )
                    self._logger.info(f"Processing {index}/{total}: {item.display_name}")
                    update(item, status=BatchStatus.PROCESSING, error=None)

                    try:
                        result = self._service.process(
                            item.source_path,
                            region,
                            options,
                            include_preview=False,
                            inpainter=inpainter,
                        )
                    except Exception as e:
                        message = str(e) or type(e).__name__
                        batch_manager.add_error(
                            item_identifier=item.display_name, error_message=message
                        )
                        update(item, status=BatchStatus.FAILED, error=message)
                        continue

                    update(
                        item,
                        status=BatchStatus.COMPLETED,
                        processed_path=result.output_path,
                    )
        finally:
            if on_progress is not None:
                on_progress(None)

        counts = count_batch_results(items)
        log_final_statistics(
            time.time() - start_time,
            total,
            counts[BatchStatus.COMPLETED],
            counts[BatchStatus.FAILED],
            skipped,
        )

    @staticmethod
    def summarize(items: List[BatchItem]) -> Dict[str, int]:
        """Item count per status name."""
        return {
            status.value: count for status, count in count_batch_results(items).items()
        }

    @staticmethod
    def snapshot(items: List[BatchItem]) -> List[BatchItem]:
        """Read-only copies of the items for observers."""
        return [item.model_copy() for item in items]
