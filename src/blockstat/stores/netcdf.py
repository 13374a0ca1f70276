"""Read-only NetCDF array store via xarray.

Opens one 3-D variable lazily; each read_rows() call slices the row
dimension and loads only those rows. Decoding follows xarray defaults, so
``_FillValue`` becomes NaN and element size is that of the decoded dtype
(the in-memory footprint, which is what the budget is about).
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import xarray as xr

from blockstat.errors import StoreReadError, StoreWriteError
from blockstat.stores.base import ArrayStore

__all__ = ['NetCDFArrayStore']

logger = logging.getLogger(__name__)


class NetCDFArrayStore(ArrayStore):
    """Input store over one variable of a NetCDF file.

    Parameters
    ----------
    path : Path or str
        NetCDF file.
    variable : str
        Name of the 3-D data variable.
    layer_dim : str, optional
        Dimension reduced across. Defaults to the variable's first dimension
        (e.g. ``time`` or ``band`` in a (time, y, x) cube).
    row_dim, col_dim : str, optional
        Spatial dimensions. Default to the remaining dimensions in order.

    Examples
    --------
    >>> with NetCDFArrayStore("cube.nc", "precip", layer_dim="time") as store:
    ...     store.dimensions()
    (180, 360)
    """

    def __init__(self, path: Union[Path, str], variable: str,
                 layer_dim: Optional[str] = None,
                 row_dim: Optional[str] = None,
                 col_dim: Optional[str] = None):
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"NetCDF not found: {self.path}")

        self._ds = xr.open_dataset(self.path)
        if variable not in self._ds.data_vars:
            self._ds.close()
            raise KeyError(f"Variable '{variable}' not in {self.path.name}")

        var = self._ds[variable]
        if var.ndim != 3:
            self._ds.close()
            raise ValueError(f"Variable '{variable}' has {var.ndim} dims, expected 3")

        dims = list(var.dims)
        self.layer_dim = layer_dim or dims[0]
        spatial = [d for d in dims if d != self.layer_dim]
        self.row_dim = row_dim or spatial[0]
        self.col_dim = col_dim or spatial[1]

        self.variable = variable
        try:
            self._var = var.transpose(self.row_dim, self.col_dim, self.layer_dim)
        except (KeyError, ValueError) as e:
            self._ds.close()
            raise ValueError(
                f"Cannot order '{variable}' dims {tuple(dims)} as "
                f"({self.row_dim}, {self.col_dim}, {self.layer_dim}): {e}"
            ) from e
        self.nodata = var.attrs.get("nodata")
        logger.info("Opened %s:%s dims=(%s, %s, %s) shape=%s dtype=%s",
                    self.path.name, variable, self.row_dim, self.col_dim, self.layer_dim,
                    self._var.shape, self._var.dtype)

    def dimensions(self) -> Tuple[int, int]:
        return int(self._var.shape[0]), int(self._var.shape[1])

    def layer_count(self) -> int:
        return int(self._var.shape[2])

    def element_byte_size(self) -> int:
        return self._var.dtype.itemsize

    def read_rows(self, start_row: int, row_count: int) -> np.ndarray:
        self._check_range(start_row, row_count)
        try:
            rows = self._var.isel({self.row_dim: slice(start_row, start_row + row_count)})
            return np.asarray(rows.values)
        except (OSError, RuntimeError, ValueError) as e:
            raise StoreReadError(f"Read failed on {self.path.name}:{self.variable}: {e}") from e

    def write_rows(self, start_row: int, block: np.ndarray) -> None:
        raise StoreWriteError(f"{self.path.name} is a read-only store")

    def close(self) -> None:
        self._ds.close()
