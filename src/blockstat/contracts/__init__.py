"""Run contracts: fail-fast enforcement of stage invariants.

Contracts fail immediately and loudly when a stage does not produce the
invariants it promised: the planner must cover every row exactly once, and
a store must hand back blocks of the requested shape.

Key principle:
- Pydantic validates config correctness
- errors.InvalidDescriptor / InvalidBudget reject bad caller input
- Contracts validate planner and store correctness
"""

from blockstat.contracts.failure import ContractViolation
from blockstat.contracts.base import require
from blockstat.contracts.plan import (
    assert_plan_covers,
    assert_plan_within_budget,
    assert_concurrent_footprint,
)
from blockstat.contracts.block import assert_input_block, assert_reduced_block

__all__ = [
    "ContractViolation",
    "require",
    "assert_plan_covers",
    "assert_plan_within_budget",
    "assert_concurrent_footprint",
    "assert_input_block",
    "assert_reduced_block",
]
