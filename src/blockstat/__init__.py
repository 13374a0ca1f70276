"""`blockstat` - Block-wise statistics over arrays that do not fit in memory.

Subpackages:
- core: Descriptors, budgets, block ranges, reduction kinds
- planning: Memory-budgeted row partitioning
- pipeline: Streaming reducer, orchestrator, benchmark
- stores: Row-range array store contract and adapters
- schemas: Pydantic configuration
"""

__version__ = "0.1.0"
