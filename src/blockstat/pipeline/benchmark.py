"""Block size vs time trade-off.

Runs the same reduction under several memory ceilings and tabulates how
the ceiling translates into block height, block count, per-block footprint
and wall time. Every run is also compared against the first one: block
size is a performance knob only, so results must match exactly.
"""

import logging
import time
from typing import Callable, Iterable, Optional, Union

import numpy as np
import pandas as pd

from blockstat.core.types import ArrayDescriptor, MemoryBudget
from blockstat.core.reductions import ReductionKind, missing_mask
from blockstat.planning import plan as make_plan
from blockstat.pipeline.reducer import StreamingReducer
from blockstat.stores.base import ArrayStore
from blockstat.stores.memory import InMemoryArrayStore

__all__ = ['benchmark_budgets']

logger = logging.getLogger(__name__)


def _memory_output(descriptor: ArrayDescriptor, kind: ReductionKind) -> InMemoryArrayStore:
    if kind is ReductionKind.COUNT:
        return InMemoryArrayStore.empty(descriptor.row_count, descriptor.col_count, "int64", nodata=-1)
    return InMemoryArrayStore.empty(descriptor.row_count, descriptor.col_count, "float64")


def benchmark_budgets(
    input_store: ArrayStore,
    budgets: Iterable[int],
    kind: Union[ReductionKind, str] = "mean",
    copies_needed: Optional[int] = None,
    workers: int = 1,
    repeats: int = 1,
    output_factory: Optional[Callable[[ArrayDescriptor, ReductionKind], ArrayStore]] = None,
) -> pd.DataFrame:
    """Time a reduction at each byte ceiling in ``budgets``.

    Parameters
    ----------
    input_store : ArrayStore
        Input to reduce (read once per run).
    budgets : iterable of int
        Byte ceilings to try.
    kind : ReductionKind or str, optional
        Reduction to run (default "mean").
    copies_needed : int, optional
        Multiplier; the reduction's default if None.
    workers : int, optional
        Worker threads per run (default 1).
    repeats : int, optional
        Runs per budget; the fastest is reported (default 1).
    output_factory : callable, optional
        ``(descriptor, kind) -> ArrayStore`` for each run's output. Defaults
        to an in-memory store.

    Returns
    -------
    pd.DataFrame
        One row per budget with columns ``max_bytes``, ``rows_per_block``,
        ``blocks``, ``block_bytes``, ``budget_exceeded``, ``elapsed_s``,
        ``mb_per_s`` and ``matches_first``.
    """
    kind = ReductionKind(kind)
    copies = copies_needed or kind.default_copies_needed
    descriptor = ArrayDescriptor.from_store(input_store)
    make_output = output_factory or _memory_output
    reducer = StreamingReducer(workers=workers)

    records = []
    reference = None
    for max_bytes in budgets:
        budget = MemoryBudget(max_bytes=int(max_bytes), copies_needed=copies)
        block_plan = make_plan(descriptor, budget, workers=workers)

        best = None
        output = None
        for _ in range(max(1, repeats)):
            output = make_output(descriptor, kind)
            start = time.perf_counter()
            reducer.reduce(input_store, output, block_plan, kind)
            elapsed = time.perf_counter() - start
            best = elapsed if best is None else min(best, elapsed)

        values = output.read_rows(0, descriptor.row_count)[:, :, 0]
        result = np.ma.MaskedArray(values, mask=missing_mask(values, output.nodata))
        if reference is None:
            reference = result
        matches = bool(
            np.array_equal(np.ma.getmaskarray(result), np.ma.getmaskarray(reference))
            and np.array_equal(result.filled(0), reference.filled(0))
        )
        if not matches:
            logger.error("Result at %d bytes differs from first budget", max_bytes)

        records.append({
            "max_bytes": int(max_bytes),
            "rows_per_block": block_plan.rows_per_block,
            "blocks": len(block_plan),
            "block_bytes": block_plan.rows_per_block * descriptor.bytes_per_row * copies,
            "budget_exceeded": block_plan.budget_exceeded,
            "elapsed_s": best,
            "mb_per_s": descriptor.total_bytes / 1024 ** 2 / best if best > 0 else np.nan,
            "matches_first": matches,
        })
        logger.info("Budget %d bytes: %d blocks of %d rows, %.3f s",
                    max_bytes, len(block_plan), block_plan.rows_per_block, best)

    return pd.DataFrame.from_records(records)
