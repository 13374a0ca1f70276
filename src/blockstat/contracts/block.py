"""Block I/O contracts.

Enforces that an array store returns blocks of the shape that was asked for,
and that the reducer hands the output store a single-layer block.
"""

import numpy as np

from blockstat.contracts.base import require


def assert_input_block(block: np.ndarray, row_count: int, col_count: int,
                       layer_count: int) -> None:
    """Enforce the read contract: block is (row_count, col_count, layer_count)."""
    require(
        isinstance(block, np.ndarray),
        f"Read contract violated: store returned {type(block).__name__}, expected ndarray"
    )
    require(
        block.ndim == 3,
        f"Read contract violated: block has {block.ndim} dims, expected 3 (rows, cols, layers)"
    )
    expected = (row_count, col_count, layer_count)
    require(
        tuple(block.shape) == expected,
        f"Read contract violated: block shape {tuple(block.shape)}, expected {expected}"
    )
    require(
        block.dtype.kind in {"f", "i", "u"},
        f"Read contract violated: block dtype is {block.dtype}, expected numeric"
    )


def assert_reduced_block(block: np.ndarray, row_count: int, col_count: int) -> None:
    """Enforce the write contract: reduced block is (row_count, col_count)."""
    expected = (row_count, col_count)
    require(
        tuple(block.shape) == expected,
        f"Write contract violated: reduced block shape {tuple(block.shape)}, expected {expected}"
    )
