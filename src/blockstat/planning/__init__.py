"""Memory-budgeted row partitioning."""

from blockstat.planning.planner import BlockPlanner, plan

__all__ = ['BlockPlanner', 'plan']
