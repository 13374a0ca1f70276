"""Error taxonomy for planning and reduction runs.

Key distinction (mirrors the contracts package):
- ValueError subclasses: bad caller input, rejected before any I/O
- StoreError subclasses: I/O failure at a specific block, fatal for the run
- BudgetExceededWarning: non-fatal, planning proceeds at one row per block
- ContractViolation (see blockstat.contracts): a store or planner broke its promise

A cell whose layers are all missing is NOT an error. It produces a
missing output cell.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from blockstat.core.types import BlockRange

__all__ = [
    'InvalidDescriptor',
    'InvalidBudget',
    'BudgetExceededWarning',
    'StoreError',
    'StoreReadError',
    'StoreWriteError',
    'ReductionCancelled',
]


class InvalidDescriptor(ValueError):
    """Raised when an array descriptor has a non-positive dimension or element size."""
    pass


class InvalidBudget(ValueError):
    """Raised when a memory budget does not resolve to a positive byte ceiling."""
    pass


class BudgetExceededWarning(UserWarning):
    """A single row already exceeds the memory budget.

    The planner falls back to one row per block. Callers that want a hard
    failure can escalate it with ``warnings.simplefilter("error", BudgetExceededWarning)``.
    """
    pass


class StoreError(OSError):
    """I/O failure on a block of an array store.

    Attributes
    ----------
    block_range : BlockRange or None
        The row range being read or written when the failure happened.
    """

    def __init__(self, message: str, block_range: Optional["BlockRange"] = None):
        self.block_range = block_range
        if block_range is not None:
            message = (
                f"{message} (rows {block_range.start_row}..{block_range.stop_row - 1}, "
                f"start_row={block_range.start_row}, row_count={block_range.row_count})"
            )
        super().__init__(message)


class StoreReadError(StoreError):
    """Reading a block from the input store failed."""


class StoreWriteError(StoreError):
    """Writing a reduced block to the output store failed."""


class ReductionCancelled(RuntimeError):
    """The run was cancelled at a block boundary.

    Output written before cancellation is left in place and must be treated
    as invalid by the caller.
    """

    def __init__(self, blocks_done: int, blocks_total: int):
        self.blocks_done = blocks_done
        self.blocks_total = blocks_total
        super().__init__(f"Reduction cancelled after {blocks_done}/{blocks_total} blocks")
