"""
Bounded fan-out of one async operation over many items.

A failing item never aborts the batch: its exception is captured next to the
item and the remaining items keep running. Concurrency is capped with a
semaphore so a large batch cannot exhaust the target store's connection pool.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from ticketbridge.migration.models import BatchResult
from ticketbridge.observability import (
    ATTR_BATCH_LABEL,
    ATTR_BATCH_SIZE,
    ATTR_ITEMS_FAILED,
    ATTR_ITEMS_MIGRATED,
    Tracer,
    create_tracer,
)
from ticketbridge.types import TItem, TResult

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Runs an async operation over a collection with bounded concurrency.

    Results keep the input order. Cancellation is not captured: if the
    surrounding task is cancelled the batch is cancelled with it.

    Example:
        >>> runner = BatchRunner(max_concurrency=5)
        >>> result = await runner.run([1, 2, 3], migrator.migrate_one, label="tickets")
        >>> result.succeeded_count, result.failed_count
        (3, 0)
    """

    def __init__(
        self,
        max_concurrency: int = 10,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the batch runner.

        Args:
            max_concurrency: Maximum number of operations in flight at once
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._max_concurrency = max_concurrency

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    async def run(
        self,
        items: Iterable[TItem],
        operation: Callable[[TItem], Awaitable[TResult]],
        *,
        label: str = "batch",
    ) -> BatchResult[TItem, TResult]:
        """
        Apply ``operation`` to every item.

        Args:
            items: Items to process
            operation: Async callable applied to each item
            label: Batch name for logs and spans

        Returns:
            BatchResult with succeeded and failed items
        """
        pending = list(items)
        result: BatchResult[TItem, TResult] = BatchResult(label=label)

        with self._tracer.span(
            "ticketbridge.batch.run",
            {ATTR_BATCH_LABEL: label, ATTR_BATCH_SIZE: len(pending)},
        ) as span:
            if not pending:
                return result

            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def _guarded(item: TItem) -> TResult:
                async with semaphore:
                    return await operation(item)

            outcomes = await asyncio.gather(
                *(_guarded(item) for item in pending),
                return_exceptions=True,
            )

            for item, outcome in zip(pending, outcomes, strict=True):
                if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                    # cancellation and interpreter exits propagate
                    raise outcome
                if isinstance(outcome, Exception):
                    logger.error(
                        "Batch %s: item %r failed: %s",
                        label,
                        item,
                        outcome,
                        exc_info=outcome,
                    )
                    result.failed.append((item, outcome))
                else:
                    result.succeeded.append((item, outcome))

            if span is not None:
                span.set_attribute(ATTR_ITEMS_MIGRATED, result.succeeded_count)
                span.set_attribute(ATTR_ITEMS_FAILED, result.failed_count)

            logger.info(
                "Batch %s finished: %d succeeded, %d failed",
                label,
                result.succeeded_count,
                result.failed_count,
            )
            return result


__all__ = ["BatchRunner"]
