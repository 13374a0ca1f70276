"""Array store contract consumed by the planner and the reducer.

A store exposes a (rows, cols, layers) array addressable by row ranges.
Reads return an in-memory ``(row_count, cols, layers)`` block; writes take a
``(row_count, cols)`` block (the reduced, single-layer result), optionally
masked. Missing values are NaN in floating data or equal to ``nodata``.

Stores must tolerate concurrent reads and concurrent writes to disjoint
row ranges. The engine does not serialize I/O for them.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from blockstat.errors import StoreReadError, StoreWriteError

__all__ = ['ArrayStore']


class ArrayStore(ABC):
    """Abstract row-range array store.

    Attributes
    ----------
    nodata : float or None
        Sentinel marking missing elements. None means NaN only.
    """

    nodata: Optional[float] = None

    @abstractmethod
    def dimensions(self) -> Tuple[int, int]:
        """(row_count, col_count)."""

    @abstractmethod
    def layer_count(self) -> int:
        """Number of layers per cell."""

    @abstractmethod
    def element_byte_size(self) -> int:
        """Bytes per element of a block as returned by read_rows()."""

    @abstractmethod
    def read_rows(self, start_row: int, row_count: int) -> np.ndarray:
        """Read ``row_count`` rows starting at ``start_row`` as (rows, cols, layers)."""

    @abstractmethod
    def write_rows(self, start_row: int, block: np.ndarray) -> None:
        """Write a (rows, cols) block at ``start_row``."""

    def close(self) -> None:
        """Release file handles. Default is a no-op."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _check_range(self, start_row: int, row_count: int, error=StoreReadError) -> None:
        rows, _ = self.dimensions()
        if start_row < 0 or row_count < 1 or start_row + row_count > rows:
            raise error(
                f"Row range [{start_row}, {start_row + row_count}) outside store with {rows} rows"
            )

    def _fill_missing(self, block: np.ndarray, dtype: np.dtype) -> np.ndarray:
        """Replace masked cells with this store's missing representation."""
        mask = np.ma.getmaskarray(block)
        data = np.ma.getdata(block)
        if not mask.any():
            return data.astype(dtype, copy=False)

        if self.nodata is not None:
            fill = self.nodata
        elif np.dtype(dtype).kind == "f":
            fill = np.nan
        else:
            raise StoreWriteError(
                f"Block has {int(mask.sum())} missing cells but {dtype} store has no nodata value"
            )
        return np.where(mask, fill, data).astype(dtype, copy=False)
