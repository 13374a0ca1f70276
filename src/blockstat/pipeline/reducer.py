"""Streaming block reducer.

Executes a BlockPlan against an input store: read block, reduce across
layers, write the single-layer result at the same rows. Blocks are
independent, so they may run on several worker threads and complete in any
order.
"""

import logging
import queue
import threading
import time
from typing import Optional, Union

import numpy as np

from blockstat.core.types import ArrayDescriptor, BlockPlan, BlockRange, ReductionSummary
from blockstat.core.reductions import ReductionKind, reduce_block
from blockstat.contracts import (
    require,
    assert_plan_covers,
    assert_concurrent_footprint,
    assert_input_block,
    assert_reduced_block,
)
from blockstat.errors import StoreError, StoreReadError, StoreWriteError, ReductionCancelled
from blockstat.stores.base import ArrayStore

__all__ = ['StreamingReducer', 'BlockWorker']

logger = logging.getLogger(__name__)


class StreamingReducer:
    """Reduces an input store into an output store one block at a time.

    **Per-block Pipeline:**

    1. **Read**: ``input_store.read_rows(start_row, row_count)`` returns a
       (rows, cols, layers) block. The block shape contract is checked.

    2. **Reduce**: layers are folded per cell with the reduction's combine
       operation. Missing values (NaN or the store's nodata) are skipped and
       do not count towards the mean denominator.

    3. **Write**: the (rows, cols) result goes to ``output_store`` at the
       same ``start_row``. Cells with no valid layer are written as the
       output store's missing value.

    **Failures:**

    A read or write failure aborts the run with StoreReadError or
    StoreWriteError carrying the block range. Nothing is retried and
    output already written is not cleaned up; the caller must discard the
    output store.

    **Cancellation:**

    ``cancel()`` is honoured at block boundaries. Blocks already in flight
    finish first, then ReductionCancelled is raised. A cancelled reducer
    stays cancelled.

    **Parallelism:**

    With ``workers > 1``, BlockWorker threads pull ranges from a shared
    queue. There is no shared accumulator; each block is a pure function of
    its own rows. At most ``min(workers, plan.workers, len(plan))`` blocks
    are in flight, so a plan sized for fewer workers runs with fewer
    threads and still fits its budget.

    Example usage::

        reducer = StreamingReducer(workers=4)
        summary = reducer.reduce(src, dst, plan, "mean")
    """

    def __init__(self, workers: int = 1):
        """Initialize reducer.

        Parameters
        ----------
        workers : int, optional
            Number of blocks processed concurrently (default 1, sequential).
        """
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.workers = workers
        self._cancel_event = threading.Event()
        self._failed_event = threading.Event()

    def cancel(self):
        """Request cancellation at the next block boundary."""
        self._cancel_event.set()

    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def reduce(self, input_store: ArrayStore, output_store: ArrayStore, plan: BlockPlan,
               kind: Union[ReductionKind, str]) -> ReductionSummary:
        """Run ``plan`` over ``input_store`` and write results to ``output_store``.

        Parameters
        ----------
        input_store : ArrayStore
            Source of (rows, cols, layers) blocks.
        output_store : ArrayStore
            Single-layer destination with the same (rows, cols).
        plan : BlockPlan
            Row partition from the planner.
        kind : ReductionKind or str
            sum, mean, count, min or max.

        Returns
        -------
        ReductionSummary

        Raises
        ------
        StoreReadError, StoreWriteError
            I/O failure on a block; ``block_range`` identifies it.
        ReductionCancelled
            ``cancel()`` was called before the plan completed.
        ContractViolation
            Plan does not cover the input, output shape differs, the blocks
            in flight overrun the plan's ceiling, or a store returned a bad
            block.
        """
        kind = ReductionKind(kind)
        descriptor = ArrayDescriptor.from_store(input_store)

        assert_plan_covers(plan, descriptor.row_count)
        require(
            tuple(output_store.dimensions()) == (descriptor.row_count, descriptor.col_count),
            f"Output contract violated: output is {tuple(output_store.dimensions())}, "
            f"expected {(descriptor.row_count, descriptor.col_count)}"
        )
        in_flight = min(self.workers, plan.workers, len(plan))
        if in_flight > 1:
            assert_concurrent_footprint(plan, descriptor, plan.copies_needed, in_flight)
        if in_flight < self.workers:
            logger.info("Plan allows %d blocks in flight; using %d of %d workers",
                        plan.workers, in_flight, self.workers)

        self._failed_event.clear()
        logger.info("Reducing %s: %d blocks, %d workers", kind.value, len(plan), in_flight)
        start = time.perf_counter()

        if in_flight == 1:
            bytes_read = self._run_sequential(input_store, output_store, plan, kind, descriptor)
        else:
            bytes_read = self._run_parallel(input_store, output_store, plan, kind, descriptor,
                                            in_flight)

        elapsed = time.perf_counter() - start
        logger.info("✓ Reduced %d rows in %d blocks (%.1f MB read) in %.2f s",
                    descriptor.row_count, len(plan), bytes_read / 1024 ** 2, elapsed)

        return ReductionSummary(
            kind=kind.value,
            blocks=len(plan),
            rows=descriptor.row_count,
            bytes_read=bytes_read,
            elapsed_seconds=elapsed,
            workers=in_flight,
            budget_exceeded=plan.budget_exceeded,
        )

    def _run_sequential(self, input_store, output_store, plan, kind, descriptor) -> int:
        bytes_read = 0
        for done, block_range in enumerate(plan):
            if self.cancelled():
                logger.warning("Cancelled at block %d/%d", done, len(plan))
                raise ReductionCancelled(done, len(plan))
            bytes_read += self.process_block(input_store, output_store, block_range, kind, descriptor)
        return bytes_read

    def _run_parallel(self, input_store, output_store, plan, kind, descriptor,
                      in_flight) -> int:
        tasks = queue.Queue()
        for block_range in plan:
            tasks.put(block_range)

        workers = [
            BlockWorker(self, tasks, input_store, output_store, kind, descriptor,
                        name=f"BlockWorker-{i}")
            for i in range(in_flight)
        ]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        errors = [w.error for w in workers if w.error is not None]
        if errors:
            # Report the failure on the lowest rows; all others are logged.
            errors.sort(key=_error_start_row)
            for extra in errors[1:]:
                logger.error("Additional block failure: %s", extra)
            raise errors[0]

        done = sum(w.blocks_done for w in workers)
        if done < len(plan):
            logger.warning("Cancelled after %d/%d blocks", done, len(plan))
            raise ReductionCancelled(done, len(plan))

        return sum(w.bytes_read for w in workers)

    def process_block(self, input_store: ArrayStore, output_store: ArrayStore,
                      block_range: BlockRange, kind: ReductionKind,
                      descriptor: ArrayDescriptor) -> int:
        """Read, reduce and write one block. Returns bytes read."""
        try:
            block = input_store.read_rows(block_range.start_row, block_range.row_count)
        except StoreError as e:
            raise StoreReadError(f"Read failed: {e}", block_range) from e
        except Exception as e:
            raise StoreReadError(f"Read failed: {type(e).__name__}: {e}", block_range) from e

        assert_input_block(block, block_range.row_count, descriptor.col_count,
                           descriptor.layer_count)

        reduced = reduce_block(block, kind, nodata=input_store.nodata)
        assert_reduced_block(reduced, block_range.row_count, descriptor.col_count)

        try:
            output_store.write_rows(block_range.start_row, reduced)
        except StoreError as e:
            raise StoreWriteError(f"Write failed: {e}", block_range) from e
        except Exception as e:
            raise StoreWriteError(f"Write failed: {type(e).__name__}: {e}", block_range) from e

        logger.debug("Block rows %d..%d done (%d missing cells)",
                     block_range.start_row, block_range.stop_row - 1,
                     int(np.ma.count_masked(reduced)))
        return int(block.nbytes)


def _error_start_row(error: BaseException) -> int:
    block_range = getattr(error, "block_range", None)
    return block_range.start_row if block_range is not None else -1


class BlockWorker(threading.Thread):
    """Worker thread pulling BlockRanges from a shared queue.

    Stops when the queue is empty, when the reducer is cancelled, or when
    any worker has failed. The first exception it hits is kept in
    ``error`` for the reducer to re-raise.
    """

    def __init__(self, reducer: StreamingReducer, tasks: queue.Queue,
                 input_store: ArrayStore, output_store: ArrayStore,
                 kind: ReductionKind, descriptor: ArrayDescriptor,
                 name: str = "BlockWorker"):
        super().__init__(daemon=True, name=name)
        self.reducer = reducer
        self.tasks = tasks
        self.input_store = input_store
        self.output_store = output_store
        self.kind = kind
        self.descriptor = descriptor

        self.error: Optional[BaseException] = None
        self.blocks_done = 0
        self.bytes_read = 0

    def run(self):
        while not (self.reducer.cancelled() or self.reducer._failed_event.is_set()):
            try:
                block_range = self.tasks.get_nowait()
            except queue.Empty:
                break

            try:
                self.bytes_read += self.reducer.process_block(
                    self.input_store, self.output_store, block_range, self.kind, self.descriptor
                )
            except Exception as e:
                logger.error("%s failed on rows %d..%d: %s", self.name,
                             block_range.start_row, block_range.stop_row - 1, e)
                self.error = e
                self.reducer._failed_event.set()
                break

            self.blocks_done += 1
