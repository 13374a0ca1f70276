"""Core value types and reductions for blockstat."""

from blockstat.core.types import (
    ArrayDescriptor,
    MemoryBudget,
    BlockRange,
    BlockPlan,
    ReductionSummary,
)
from blockstat.core.reductions import ReductionKind, reduce_block, missing_mask

__all__ = [
    'ArrayDescriptor',
    'MemoryBudget',
    'BlockRange',
    'BlockPlan',
    'ReductionSummary',
    'ReductionKind',
    'reduce_block',
    'missing_mask',
]
