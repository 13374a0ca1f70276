"""Raw binary array store backed by numpy.memmap.

Layout: a C-ordered (rows, cols, layers) array in ``<path>`` plus a JSON
sidecar ``<path>.json`` holding shape, dtype and nodata. Row ranges are
contiguous on disk, so a block read touches one byte range and concurrent
writes to disjoint row ranges never overlap.
"""

import json
import logging
import math
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import xarray as xr

from blockstat.errors import StoreError, StoreReadError, StoreWriteError
from blockstat.stores.base import ArrayStore

__all__ = ['RawBinaryArrayStore']

logger = logging.getLogger(__name__)


def _sidecar_path(path: Path) -> Path:
    return path.with_name(path.name + ".json")


class RawBinaryArrayStore(ArrayStore):
    """Row-range store over a memory-mapped binary file.

    Use :meth:`create` for a new file and :meth:`open` for an existing one.

    Parameters
    ----------
    path : Path or str
        Data file path.
    mode : {"r", "r+", "w+"}
        numpy.memmap mode.
    shape : tuple of int
        (rows, cols, layers).
    dtype : str or np.dtype
        Element dtype.
    nodata : float, optional
        Missing-value sentinel in addition to NaN.
    """

    def __init__(self, path: Union[Path, str], mode: str, shape: Tuple[int, int, int],
                 dtype, nodata: Optional[float] = None):
        self.path = Path(path)
        self.mode = mode
        self.nodata = nodata
        self._dtype = np.dtype(dtype)
        self._shape = tuple(int(s) for s in shape)
        try:
            self._mm = np.memmap(self.path, dtype=self._dtype, mode=mode, shape=self._shape)
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot map {self.path}: {e}") from e
        logger.debug("Mapped %s: shape=%s dtype=%s mode=%s", self.path.name, self._shape,
                     self._dtype, mode)

    @classmethod
    def create(cls, path: Union[Path, str], row_count: int, col_count: int,
               layer_count: int = 1, dtype="float64",
               nodata: Optional[float] = None) -> "RawBinaryArrayStore":
        """Create a new file filled with the store's missing value."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        sidecar = {
            "shape": [row_count, col_count, layer_count],
            "dtype": np.dtype(dtype).str,
            "nodata": nodata,
        }
        with open(_sidecar_path(path), 'w') as f:
            json.dump(sidecar, f, indent=2)

        store = cls(path, "w+", (row_count, col_count, layer_count), dtype, nodata)
        if nodata is not None:
            store._mm[:] = nodata
        elif store._dtype.kind == "f":
            store._mm[:] = np.nan
        return store

    @classmethod
    def open(cls, path: Union[Path, str], mode: str = "r") -> "RawBinaryArrayStore":
        """Open an existing file using its sidecar."""
        path = Path(path)
        sidecar_path = _sidecar_path(path)
        if not sidecar_path.exists():
            raise FileNotFoundError(f"Sidecar not found: {sidecar_path}")
        with open(sidecar_path) as f:
            meta = json.load(f)
        return cls(path, mode, tuple(meta["shape"]), meta["dtype"], meta.get("nodata"))

    @classmethod
    def from_array(cls, path: Union[Path, str], data: np.ndarray,
                   nodata: Optional[float] = None) -> "RawBinaryArrayStore":
        """Write ``data`` (rows, cols[, layers]) to a new file and reopen it read-only."""
        if data.ndim == 2:
            data = data[:, :, np.newaxis]
        store = cls.create(path, *data.shape, dtype=data.dtype, nodata=nodata)
        store._mm[:] = data
        store.close()
        return cls.open(path, mode="r")

    def dimensions(self) -> Tuple[int, int]:
        return self._shape[0], self._shape[1]

    def layer_count(self) -> int:
        return self._shape[2]

    def element_byte_size(self) -> int:
        return self._dtype.itemsize

    def read_rows(self, start_row: int, row_count: int) -> np.ndarray:
        self._check_range(start_row, row_count)
        try:
            return np.array(self._mm[start_row:start_row + row_count])
        except (OSError, ValueError) as e:
            raise StoreReadError(f"Read failed on {self.path.name}: {e}") from e

    def write_rows(self, start_row: int, block: np.ndarray) -> None:
        if self.mode == "r":
            raise StoreWriteError(f"{self.path.name} is opened read-only")
        self._check_range(start_row, block.shape[0], error=StoreWriteError)
        if self.layer_count() != 1:
            raise StoreWriteError(f"Cannot write a reduced block into a {self.layer_count()}-layer store")
        values = self._fill_missing(block, self._dtype)
        try:
            self._mm[start_row:start_row + block.shape[0], :, 0] = values
        except (OSError, ValueError) as e:
            raise StoreWriteError(f"Write failed on {self.path.name}: {e}") from e

    def flush(self) -> None:
        if self.mode != "r":
            self._mm.flush()

    def close(self) -> None:
        if getattr(self, "_mm", None) is None:
            return
        self.flush()
        self._mm = None

    def to_xarray(self, name: Optional[str] = None) -> xr.DataArray:
        """Load the store as a DataArray with missing cells set to NaN.

        Integer stores with a nodata value are promoted to float64 so the
        missing cells can be represented.
        """
        values = np.array(self._mm)
        if self.nodata is not None and not (isinstance(self.nodata, float) and math.isnan(self.nodata)):
            values = np.where(values == self.nodata, np.nan, values.astype(np.float64))

        if self.layer_count() == 1:
            da = xr.DataArray(values[:, :, 0], dims=("y", "x"))
        else:
            da = xr.DataArray(values, dims=("y", "x", "layer"))
        da.name = name or self.path.stem
        da.attrs["source"] = str(self.path)
        return da
