"""Batch orchestration — runs the per-component pipeline over many identifiers."""

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

from models import BatchReport

logger = logging.getLogger(__name__)

ConvertFn = Callable[[str], Awaitable[object]]


class BatchStats:
    """Success/failure tally shared by every task of one batch."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._success = 0
        self._failed = 0
        self._failed_ids: list[str] = []

    async def record_success(self) -> None:
        async with self._lock:
            self._success += 1

    async def record_failure(self, identifier: str) -> None:
        async with self._lock:
            self._failed += 1
            self._failed_ids.append(identifier)

    def report(self, total: int) -> BatchReport:
        return BatchReport(
            total=total,
            success=self._success,
            failed=self._failed,
            failed_ids=list(self._failed_ids),
        )


class BatchOrchestrator:
    """Converts identifiers with at most ``parallel`` conversions in flight.

    A task holds its admission slot for the whole conversion, fetch through
    final write. With one slot, or one identifier, conversions run in input
    order and the first failure stops the batch unless ``continue_on_error``.
    """

    def __init__(self, convert: ConvertFn, parallel: int = 4,
                 continue_on_error: bool = False):
        self.convert = convert
        self.parallel = parallel
        self.continue_on_error = continue_on_error

    async def run(self, identifiers: list[str],
                  stats: Optional[BatchStats] = None) -> BatchReport:
        stats = stats or BatchStats()
        total = len(identifiers)
        if self.parallel <= 1 or total <= 1:
            await self._run_sequential(identifiers, stats)
        else:
            logger.info("Batch mode: processing %d components, %d in parallel",
                        total, self.parallel)
            await self._run_parallel(identifiers, stats)
        return stats.report(total)

    async def _run_sequential(self, identifiers: list[str], stats: BatchStats) -> None:
        total = len(identifiers)
        for index, identifier in enumerate(identifiers, start=1):
            if total > 1:
                print(f"\n[{index}/{total}] Processing: {identifier}")
            else:
                logger.info("Starting conversion for LCSC ID: %s", identifier)
            try:
                await self.convert(identifier)
            except Exception as e:
                await stats.record_failure(identifier)
                if not self.continue_on_error:
                    raise
                print(f"✗ Failed: {identifier} - {e}", file=sys.stderr)
                logger.error("Failed to process %s: %s", identifier, e)
                continue
            await stats.record_success()
            if total > 1:
                print(f"✓ Success: {identifier}")

    async def _run_parallel(self, identifiers: list[str], stats: BatchStats) -> None:
        total = len(identifiers)
        gate = asyncio.Semaphore(self.parallel)

        async def worker(index: int, identifier: str) -> None:
            async with gate:
                print(f"\n[{index}/{total}] Processing: {identifier}")
                try:
                    await self.convert(identifier)
                except Exception as e:
                    await stats.record_failure(identifier)
                    print(f"✗ [{index}/{total}] Failed: {identifier} - {e}", file=sys.stderr)
                    logger.error("Failed to process %s: %s", identifier, e)
                    return
                await stats.record_success()
                print(f"✓ [{index}/{total}] Success: {identifier}")

        await asyncio.gather(*(
            worker(index, identifier)
            for index, identifier in enumerate(identifiers, start=1)
        ))
