"""Row-range array stores.

The reducer only talks to the ArrayStore contract. Adapters:
- InMemoryArrayStore: numpy-backed, for small arrays and tests
- NetCDFArrayStore: lazy row-range reads of one NetCDF variable via xarray
- RawBinaryArrayStore: numpy.memmap file with a JSON sidecar, read/write
"""

from blockstat.stores.base import ArrayStore
from blockstat.stores.memory import InMemoryArrayStore
from blockstat.stores.netcdf import NetCDFArrayStore
from blockstat.stores.raw import RawBinaryArrayStore

__all__ = ['ArrayStore', 'InMemoryArrayStore', 'NetCDFArrayStore', 'RawBinaryArrayStore']
