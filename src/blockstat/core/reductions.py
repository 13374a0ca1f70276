"""Cell-wise reductions across the layer dimension.

Each reduction kind is defined by an identity element, a combine operation
over (accumulator, value) pairs and a finalize step. Missing values are
excluded from the combine and from the mean denominator; a cell with no
valid layers comes out masked, for every kind.

Layers are folded one at a time in input order, so the value of a cell
depends only on that cell's own layer sequence. This is what makes the
result independent of how rows are grouped into blocks.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
import logging

import numpy as np

__all__ = ['ReductionKind', 'Reduction', 'REDUCTIONS', 'missing_mask', 'reduce_block']

logger = logging.getLogger(__name__)


class ReductionKind(str, Enum):
    """Supported reductions."""
    SUM = "sum"
    MEAN = "mean"
    COUNT = "count"
    MIN = "min"
    MAX = "max"

    @property
    def reduction(self) -> "Reduction":
        return REDUCTIONS[self]

    @property
    def default_copies_needed(self) -> int:
        return REDUCTIONS[self].copies_needed


@dataclass(frozen=True)
class Reduction:
    """Definition of one reduction kind.

    Attributes
    ----------
    identity : float
        Starting accumulator value.
    combine : np.ufunc or None
        Binary operation folding a layer into the accumulator. None for
        ``count``, which only tallies valid layers.
    output_dtype : np.dtype
        dtype of the reduced block (min/max of integer input keep their
        own dtype instead).
    copies_needed : int
        Default number of block-sized copies the reduction keeps in memory.
    """
    kind: ReductionKind
    identity: float
    combine: Optional[np.ufunc]
    output_dtype: np.dtype
    copies_needed: int
    divide_by_count: bool = False


REDUCTIONS = {
    ReductionKind.SUM: Reduction(ReductionKind.SUM, 0.0, np.add, np.dtype("float64"), 1),
    ReductionKind.MEAN: Reduction(ReductionKind.MEAN, 0.0, np.add, np.dtype("float64"), 2,
                                  divide_by_count=True),
    ReductionKind.COUNT: Reduction(ReductionKind.COUNT, 0.0, None, np.dtype("int64"), 1),
    ReductionKind.MIN: Reduction(ReductionKind.MIN, np.inf, np.minimum, np.dtype("float64"), 1),
    ReductionKind.MAX: Reduction(ReductionKind.MAX, -np.inf, np.maximum, np.dtype("float64"), 1),
}


def missing_mask(block: np.ndarray, nodata: Optional[float] = None) -> np.ndarray:
    """Boolean mask of missing elements.

    Missing means any of: an existing numpy mask, NaN in floating data, or
    equality with the store's ``nodata`` sentinel.
    """
    mask = np.array(np.ma.getmaskarray(block), copy=True)
    data = np.ma.getdata(block)
    if data.dtype.kind == "f":
        mask |= np.isnan(data)
    if nodata is not None and not (isinstance(nodata, float) and np.isnan(nodata)):
        mask |= data == nodata
    return mask


def reduce_block(block: np.ndarray, kind: Union[ReductionKind, str],
                 nodata: Optional[float] = None) -> np.ma.MaskedArray:
    """Reduce a (rows, cols, layers) block to a masked (rows, cols) block.

    Parameters
    ----------
    block : np.ndarray
        Input rows; may be a masked array.
    kind : ReductionKind or str
        One of sum, mean, count, min, max.
    nodata : float, optional
        Sentinel marking missing elements in addition to NaN.

    Returns
    -------
    np.ma.MaskedArray
        Reduced values. Cells with no valid layers are masked. min and max
        of integer input keep the input dtype; everything else is float64,
        except count, which is int64.

    Examples
    --------
    >>> block = np.array([[[2.0, np.nan, 4.0]]])
    >>> float(reduce_block(block, "mean")[0, 0])
    3.0
    """
    reduction = ReductionKind(kind).reduction
    missing = missing_mask(block, nodata)
    data = np.ma.getdata(block)
    rows, cols, layers = data.shape

    # min/max of integers stay in the input dtype so large values are exact
    exact = (reduction.kind in (ReductionKind.MIN, ReductionKind.MAX)
             and data.dtype.kind in "iu")
    if exact:
        acc_dtype = data.dtype
        info = np.iinfo(acc_dtype)
        identity = info.max if reduction.kind is ReductionKind.MIN else info.min
        output_dtype = acc_dtype
    else:
        acc_dtype = np.dtype(np.float64)
        identity = reduction.identity
        output_dtype = reduction.output_dtype

    n_valid = np.zeros((rows, cols), dtype=np.int64)
    acc = np.full((rows, cols), identity, dtype=acc_dtype)

    for k in range(layers):
        present = ~missing[:, :, k]
        n_valid += present
        if reduction.combine is None:
            continue
        layer = data[:, :, k].astype(acc_dtype, copy=False)
        np.copyto(acc, reduction.combine(acc, layer), where=present)

    empty = n_valid == 0

    if reduction.combine is None:
        result = n_valid
    elif reduction.divide_by_count:
        result = np.divide(acc, n_valid, out=np.zeros_like(acc), where=~empty)
    else:
        result = np.where(empty, 0, acc)

    return np.ma.MaskedArray(result.astype(output_dtype, copy=False), mask=empty)
