"""numpy-backed array store."""

import threading
from typing import Optional, Tuple

import numpy as np

from blockstat.core.reductions import missing_mask
from blockstat.errors import StoreWriteError
from blockstat.stores.base import ArrayStore

__all__ = ['InMemoryArrayStore']


class InMemoryArrayStore(ArrayStore):
    """Array store over an in-memory numpy array.

    Parameters
    ----------
    data : np.ndarray
        (rows, cols, layers) input array, or (rows, cols) for a
        single-layer output store.
    nodata : float, optional
        Missing-value sentinel in addition to NaN.

    Examples
    --------
    >>> src = InMemoryArrayStore(np.random.rand(10, 4, 3))
    >>> dst = InMemoryArrayStore.empty(10, 4)
    """

    def __init__(self, data: np.ndarray, nodata: Optional[float] = None):
        if data.ndim == 2:
            data = data[:, :, np.newaxis]
        if data.ndim != 3:
            raise ValueError(f"Expected 2-D or 3-D array, got {data.ndim} dims")
        self.data = data
        self.nodata = nodata
        self._lock = threading.Lock()

    @classmethod
    def empty(cls, row_count: int, col_count: int, dtype="float64",
              nodata: Optional[float] = None) -> "InMemoryArrayStore":
        """Single-layer output store initialized to its missing value."""
        dtype = np.dtype(dtype)
        if nodata is not None:
            fill = nodata
        elif dtype.kind == "f":
            fill = np.nan
        else:
            fill = 0
        return cls(np.full((row_count, col_count), fill, dtype=dtype), nodata=nodata)

    def dimensions(self) -> Tuple[int, int]:
        return self.data.shape[0], self.data.shape[1]

    def layer_count(self) -> int:
        return self.data.shape[2]

    def element_byte_size(self) -> int:
        return self.data.dtype.itemsize

    def read_rows(self, start_row: int, row_count: int) -> np.ndarray:
        self._check_range(start_row, row_count)
        return self.data[start_row:start_row + row_count].copy()

    def write_rows(self, start_row: int, block: np.ndarray) -> None:
        self._check_range(start_row, block.shape[0], error=StoreWriteError)
        if self.layer_count() != 1:
            raise StoreWriteError(f"Cannot write a reduced block into a {self.layer_count()}-layer store")
        values = self._fill_missing(block, self.data.dtype)
        with self._lock:
            self.data[start_row:start_row + block.shape[0], :, 0] = values

    def to_masked(self) -> np.ma.MaskedArray:
        """Layer 0 as a masked array (missing cells masked)."""
        values = self.data[:, :, 0]
        return np.ma.MaskedArray(values, mask=missing_mask(values, self.nodata))
