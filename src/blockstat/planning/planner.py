"""Translate a memory budget into a safe, deterministic row partition.

The planner is a pure function of an ArrayDescriptor and a MemoryBudget:

    rows_that_fit = floor(ceiling / (bytes_per_row * copies_needed))
    in_flight = min(workers, rows_that_fit)
    rows_per_block = rows_that_fit // in_flight

clamped to ``row_count``. With a single worker this is the plain
per-block rule; with several workers the concurrent footprint of all
blocks in flight is kept under the same ceiling. When fewer rows than
workers fit, the plan keeps one-row blocks and lowers the number of blocks
allowed in flight (``BlockPlan.workers``) instead.

If not even one row fits, planning does not fail. It falls back to one row
per block, flags the plan and emits a BudgetExceededWarning.
"""

import logging
import warnings

from blockstat.core.types import ArrayDescriptor, MemoryBudget, BlockRange, BlockPlan
from blockstat.errors import BudgetExceededWarning, InvalidDescriptor
from blockstat.contracts import assert_plan_covers, assert_plan_within_budget

__all__ = ['BlockPlanner', 'plan']

logger = logging.getLogger(__name__)


def plan(descriptor: ArrayDescriptor, budget: MemoryBudget, workers: int = 1) -> BlockPlan:
    """Partition the rows of ``descriptor`` into blocks that fit ``budget``.

    Parameters
    ----------
    descriptor : ArrayDescriptor
        Shape and element size of the input array.
    budget : MemoryBudget
        Resolved ceiling and reduction multiplier.
    workers : int, optional
        Number of blocks requested in flight at once (default 1). The plan
        may allow fewer; see ``BlockPlan.workers``.

    Returns
    -------
    BlockPlan
        Contiguous ranges of ``rows_per_block`` rows, last one truncated.

    Raises
    ------
    InvalidDescriptor
        If ``workers`` is not a positive integer.

    Warns
    -----
    BudgetExceededWarning
        If one row times ``copies_needed`` exceeds the ceiling.

    Examples
    --------
    >>> d = ArrayDescriptor(10, 4, 3, 8)          # 96 bytes per row
    >>> plan(d, MemoryBudget(max_bytes=192)).as_tuples()
    [(0, 2), (2, 2), (4, 2), (6, 2), (8, 2)]
    """
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise InvalidDescriptor(f"workers must be an integer >= 1, got {workers!r}")

    ceiling = budget.resolve()
    per_row = descriptor.bytes_per_row * budget.copies_needed
    rows_that_fit = ceiling // per_row

    budget_exceeded = rows_that_fit < 1
    if budget_exceeded:
        message = (
            f"One row needs {per_row} bytes ({descriptor.bytes_per_row} x "
            f"{budget.copies_needed} copies) but the budget is "
            f"{ceiling} bytes; processing one row per block"
        )
        logger.warning(message)
        warnings.warn(message, BudgetExceededWarning, stacklevel=2)
        in_flight = 1
        rows_per_block = 1
    else:
        # Fewer rows than workers fit: run fewer blocks at once instead.
        in_flight = min(workers, rows_that_fit)
        if in_flight < workers:
            logger.info("Only %d rows fit the budget; limiting to %d blocks in flight "
                        "(%d workers requested)", rows_that_fit, in_flight, workers)
        rows_per_block = rows_that_fit // in_flight

    rows_per_block = min(rows_per_block, descriptor.row_count)

    ranges = tuple(
        BlockRange(start, min(rows_per_block, descriptor.row_count - start))
        for start in range(0, descriptor.row_count, rows_per_block)
    )

    result = BlockPlan(
        ranges=ranges,
        rows_per_block=rows_per_block,
        ceiling_bytes=ceiling,
        copies_needed=budget.copies_needed,
        workers=in_flight,
        budget_exceeded=budget_exceeded,
    )

    assert_plan_covers(result, descriptor.row_count)
    assert_plan_within_budget(result, descriptor, budget.copies_needed * in_flight)

    logger.debug("Planned %d blocks of %d rows (ceiling=%d bytes, copies=%d, workers=%d)",
                 len(result), rows_per_block, ceiling, budget.copies_needed, in_flight)
    return result


class BlockPlanner:
    """Config-driven planner.

    Holds the worker count so that plans handed to a parallel reducer are
    always sized for the number of blocks it keeps in flight.
    """

    def __init__(self, workers: int = 1):
        self.workers = workers
        logger.info("BlockPlanner initialized: workers=%d", workers)

    def plan(self, descriptor: ArrayDescriptor, budget: MemoryBudget) -> BlockPlan:
        result = plan(descriptor, budget, workers=self.workers)
        logger.info(
            "Plan: %d rows x %d cols x %d layers -> %d blocks of <= %d rows%s",
            descriptor.row_count, descriptor.col_count, descriptor.layer_count,
            len(result), result.rows_per_block,
            " (budget exceeded)" if result.budget_exceeded else "",
        )
        return result
