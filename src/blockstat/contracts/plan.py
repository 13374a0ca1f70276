"""Planning stage contracts.

Enforces the guarantees a BlockPlan makes to the reducer: exact coverage of
the row space and conformance to the memory ceiling it was planned for.
"""

from typing import TYPE_CHECKING

from blockstat.contracts.base import require

if TYPE_CHECKING:
    from blockstat.core.types import ArrayDescriptor, BlockPlan


def assert_plan_covers(plan: "BlockPlan", row_count: int) -> None:
    """Enforce that the plan covers ``[0, row_count)`` exactly once.

    Ranges must be non-empty, contiguous, increasing and non-overlapping.

    Raises
    ------
    ContractViolation
        If there is a gap, an overlap, an empty range or a short/long tail.
    """
    require(len(plan.ranges) > 0, "Plan contract violated: no block ranges")

    expected_start = 0
    for i, block in enumerate(plan.ranges):
        require(
            block.row_count >= 1,
            f"Plan contract violated: block {i} has row_count={block.row_count}"
        )
        require(
            block.start_row == expected_start,
            f"Plan contract violated: block {i} starts at {block.start_row}, "
            f"expected {expected_start} (gap or overlap)"
        )
        expected_start = block.stop_row

    require(
        expected_start == row_count,
        f"Plan contract violated: ranges cover {expected_start} rows, expected {row_count}"
    )


def assert_plan_within_budget(plan: "BlockPlan", descriptor: "ArrayDescriptor",
                              copies_needed: int) -> None:
    """Enforce that every block fits the ceiling the plan was built for.

    The degenerate one-row fallback (``plan.budget_exceeded``) is exempt.
    """
    if plan.budget_exceeded:
        require(
            plan.rows_per_block == 1,
            f"Plan contract violated: budget exceeded but rows_per_block={plan.rows_per_block}"
        )
        return

    for block in plan.ranges:
        footprint = block.row_count * descriptor.bytes_per_row * copies_needed
        require(
            footprint <= plan.ceiling_bytes,
            f"Plan contract violated: block at row {block.start_row} needs "
            f"{footprint} bytes, ceiling is {plan.ceiling_bytes}"
        )


def assert_concurrent_footprint(plan: "BlockPlan", descriptor: "ArrayDescriptor",
                                copies_needed: int, workers: int) -> None:
    """Enforce that ``workers`` blocks in flight still fit the ceiling.

    Parallel execution multiplies the per-block footprint. A plan built for
    fewer workers than the reducer runs with is rejected.
    """
    if plan.budget_exceeded:
        return
    footprint = workers * plan.rows_per_block * descriptor.bytes_per_row * copies_needed
    require(
        footprint <= plan.ceiling_bytes,
        f"Concurrency contract violated: {workers} workers x {plan.rows_per_block} rows "
        f"needs {footprint} bytes, ceiling is {plan.ceiling_bytes} "
        f"(plan was built for {plan.workers} workers)"
    )
