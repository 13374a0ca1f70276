"""Value types shared by the planner and the reducer.

All of these are immutable. A descriptor and a budget are supplied by the
caller, a plan is computed once per run from the two, and a summary is
returned when the run finishes. Nothing here outlives a single run.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, TYPE_CHECKING
import logging

from blockstat.errors import InvalidDescriptor, InvalidBudget

if TYPE_CHECKING:
    from blockstat.stores.base import ArrayStore

__all__ = [
    'ArrayDescriptor',
    'MemoryBudget',
    'BlockRange',
    'BlockPlan',
    'ReductionSummary',
]

logger = logging.getLogger(__name__)


def _positive_int(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidDescriptor(f"{name} must be an integer, got {type(value).__name__}")
    if value <= 0:
        raise InvalidDescriptor(f"{name} must be > 0, got {value}")


@dataclass(frozen=True)
class ArrayDescriptor:
    """Shape and element size of a multi-layer 2-D array on disk.

    Parameters
    ----------
    row_count, col_count : int
        Spatial dimensions. Blocks are cut along rows.
    layer_count : int
        Number of layers reduced per cell.
    bytes_per_element : int
        Storage size of one element (8 for float64).

    Raises
    ------
    InvalidDescriptor
        If any field is not a positive integer.
    """
    row_count: int
    col_count: int
    layer_count: int
    bytes_per_element: int

    def __post_init__(self):
        _positive_int("row_count", self.row_count)
        _positive_int("col_count", self.col_count)
        _positive_int("layer_count", self.layer_count)
        _positive_int("bytes_per_element", self.bytes_per_element)

    @property
    def bytes_per_row(self) -> int:
        return self.col_count * self.layer_count * self.bytes_per_element

    @property
    def total_bytes(self) -> int:
        return self.row_count * self.bytes_per_row

    @classmethod
    def from_store(cls, store: "ArrayStore") -> "ArrayDescriptor":
        """Describe the array behind an input store."""
        rows, cols = store.dimensions()
        return cls(
            row_count=int(rows),
            col_count=int(cols),
            layer_count=int(store.layer_count()),
            bytes_per_element=int(store.element_byte_size()),
        )


@dataclass(frozen=True)
class MemoryBudget:
    """Explicit memory budget for one run.

    Either an absolute ceiling (``max_bytes``) or a ``fraction`` of a
    reported ``available_bytes`` quantity, never both. ``copies_needed`` is
    the number of block-sized copies the chosen reduction keeps in memory
    at once.

    The budget is a plain value passed into each call. There is no
    process-wide memory option read during a run.
    """
    max_bytes: Optional[int] = None
    fraction: Optional[float] = None
    available_bytes: Optional[int] = None
    copies_needed: int = 1

    def __post_init__(self):
        if (self.max_bytes is None) == (self.fraction is None):
            raise InvalidBudget("Specify exactly one of max_bytes or fraction")
        if isinstance(self.copies_needed, bool) or not isinstance(self.copies_needed, int) \
                or self.copies_needed < 1:
            raise InvalidBudget(f"copies_needed must be an integer >= 1, got {self.copies_needed!r}")
        if self.fraction is not None:
            if not 0 < self.fraction <= 1:
                raise InvalidBudget(f"fraction must be in (0, 1], got {self.fraction}")
            if self.available_bytes is None:
                raise InvalidBudget("fraction requires available_bytes")
        if self.resolve() <= 0:
            raise InvalidBudget(f"Budget resolves to {self.resolve()} bytes, must be > 0")

    def resolve(self) -> int:
        """Byte ceiling this budget allows."""
        if self.max_bytes is not None:
            return int(self.max_bytes)
        return int(self.fraction * self.available_bytes)

    def with_copies(self, copies_needed: int) -> "MemoryBudget":
        """Same ceiling, different reduction multiplier."""
        return MemoryBudget(
            max_bytes=self.max_bytes,
            fraction=self.fraction,
            available_bytes=self.available_bytes,
            copies_needed=copies_needed,
        )

    @classmethod
    def from_available_memory(cls, fraction: float, copies_needed: int = 1) -> "MemoryBudget":
        """Budget as a fraction of memory available right now.

        System memory is sampled once, here. The resulting budget is a
        fixed value, so plans built from it are reproducible.
        """
        import psutil

        available = int(psutil.virtual_memory().available)
        logger.debug("Available memory: %.1f MB", available / 1024 ** 2)
        return cls(fraction=fraction, available_bytes=available, copies_needed=copies_needed)


@dataclass(frozen=True)
class BlockRange:
    """Contiguous rows ``[start_row, start_row + row_count)``."""
    start_row: int
    row_count: int

    @property
    def stop_row(self) -> int:
        return self.start_row + self.row_count


@dataclass(frozen=True)
class BlockPlan:
    """Ordered, immutable row partition for one run.

    Attributes
    ----------
    ranges : tuple of BlockRange
        Contiguous ranges covering every row exactly once.
    rows_per_block : int
        Block height used for all ranges but possibly the last.
    ceiling_bytes : int
        Resolved budget the plan was computed against.
    copies_needed : int
        Reduction multiplier used for planning.
    workers : int
        Number of blocks the plan allows in flight at once.
    budget_exceeded : bool
        True when a single row did not fit and the planner fell back to
        one row per block.
    """
    ranges: Tuple[BlockRange, ...]
    rows_per_block: int
    ceiling_bytes: int
    copies_needed: int = 1
    workers: int = 1
    budget_exceeded: bool = False

    def __len__(self) -> int:
        return len(self.ranges)

    def __iter__(self) -> Iterator[BlockRange]:
        return iter(self.ranges)

    def as_tuples(self) -> list:
        """``[(start_row, row_count), ...]``, handy for logging and tests."""
        return [(r.start_row, r.row_count) for r in self.ranges]

    @property
    def row_count(self) -> int:
        return sum(r.row_count for r in self.ranges)


@dataclass(frozen=True)
class ReductionSummary:
    """What a completed run did."""
    kind: str
    blocks: int
    rows: int
    bytes_read: int
    elapsed_seconds: float
    workers: int = 1
    budget_exceeded: bool = False
