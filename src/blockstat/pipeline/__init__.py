"""Block scheduling and execution.

Modules:
- reducer: StreamingReducer and its worker threads
- orchestrator: config-driven run (budget → plan → reduce)
- benchmark: block size vs time trade-off table
"""

from blockstat.pipeline.reducer import StreamingReducer
from blockstat.pipeline.orchestrator import ReductionOrchestrator
from blockstat.pipeline.benchmark import benchmark_budgets

__all__ = ['StreamingReducer', 'ReductionOrchestrator', 'benchmark_budgets']
