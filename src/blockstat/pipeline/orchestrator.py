"""Run orchestration.

Turns an InternalConfig into a memory budget, plans the input store, runs
the streaming reducer and logs a summary.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np

from blockstat.core.types import ArrayDescriptor, BlockPlan, MemoryBudget, ReductionSummary
from blockstat.core.reductions import ReductionKind
from blockstat.planning import BlockPlanner
from blockstat.pipeline.reducer import StreamingReducer
from blockstat.stores.base import ArrayStore

__all__ = ['ReductionOrchestrator', 'output_layout']

logger = logging.getLogger(__name__)


def output_layout(kind: Union[ReductionKind, str], config) -> Tuple[np.dtype, Optional[float]]:
    """(dtype, nodata) an output store needs for ``kind``.

    Floating outputs mark missing cells with NaN; ``count`` is integer and
    uses ``config.output.count_nodata``.
    """
    kind = ReductionKind(kind)
    if kind is ReductionKind.COUNT:
        return np.dtype("int64"), config.output.count_nodata
    return np.dtype(config.output.float_dtype), None


class ReductionOrchestrator:
    """Runs one configured reduction from input store to output store.

    **Steps:**

    1. **Budget**: ``budget.max_bytes`` if set, else ``budget.memory_fraction``
       of the memory available now (sampled once). The copies multiplier
       comes from ``budget.copies_needed`` or the per-kind default.

    2. **Plan**: the input store is described and partitioned by a
       BlockPlanner sized for ``engine.workers``.

    3. **Reduce**: a StreamingReducer executes the plan.

    **Logging:**

    Console output, plus ``logging.log_file`` when configured, at
    ``logging.level``.

    Example usage::

        config = resolve_config(ParamConfig(), UserConfig(max_memory="512MB"))
        orch = ReductionOrchestrator(config)
        summary = orch.run(src, dst, kind="mean")
    """

    def __init__(self, config, setup_logging: bool = True):
        """Initialize orchestrator.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.
        setup_logging : bool, optional
            Configure the root logger from ``config.logging`` on first run
            (default True). Pass False when embedding in an application
            that owns logging.
        """
        self.config = config
        self._setup_logging_enabled = setup_logging
        self._logging_ready = False
        self.planner = BlockPlanner(workers=config.engine.workers)
        self.reducer = StreamingReducer(workers=config.engine.workers)

    def _setup_logging(self):
        """Configure root logger with console and optional file handlers."""
        if self._logging_ready or not self._setup_logging_enabled:
            return

        log_level = getattr(logging, self.config.logging.level, logging.INFO)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        if self.config.logging.log_file:
            log_path = Path(self.config.logging.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_path)
            fh.setLevel(log_level)
            fh.setFormatter(formatter)
            root.addHandler(fh)
            logger.info("Logging: level=%s, file=%s", self.config.logging.level, log_path)

        self._logging_ready = True

    def build_budget(self, kind: Union[ReductionKind, str]) -> MemoryBudget:
        """Memory budget for ``kind`` from the configuration."""
        kind = ReductionKind(kind)
        copies = self.config.copies_for(kind.value)
        if self.config.budget.max_bytes is not None:
            return MemoryBudget(max_bytes=self.config.budget.max_bytes, copies_needed=copies)
        return MemoryBudget.from_available_memory(self.config.budget.memory_fraction, copies)

    def plan(self, input_store: ArrayStore,
             kind: Union[ReductionKind, str, None] = None) -> BlockPlan:
        """Plan ``input_store`` for ``kind`` (config default if None) without reducing."""
        kind = ReductionKind(kind or self.config.reduction.kind)
        descriptor = ArrayDescriptor.from_store(input_store)
        return self.planner.plan(descriptor, self.build_budget(kind))

    def run(self, input_store: ArrayStore, output_store: ArrayStore,
            kind: Union[ReductionKind, str, None] = None) -> ReductionSummary:
        """Plan and reduce ``input_store`` into ``output_store``.

        Planning errors (InvalidDescriptor, InvalidBudget) are raised before
        any block is read. Store errors abort the run; the output store must
        then be discarded.
        """
        self._setup_logging()
        kind = ReductionKind(kind or self.config.reduction.kind)

        logger.info("=" * 60)
        logger.info("Starting %s reduction", kind.value)
        logger.info("=" * 60)

        descriptor = ArrayDescriptor.from_store(input_store)
        budget = self.build_budget(kind)
        logger.info("Input: %d x %d x %d, %d bytes/element (%.1f MB)",
                    descriptor.row_count, descriptor.col_count, descriptor.layer_count,
                    descriptor.bytes_per_element, descriptor.total_bytes / 1024 ** 2)
        logger.info("Budget: %.1f MB ceiling, %d copies",
                    budget.resolve() / 1024 ** 2, budget.copies_needed)

        plan = self.planner.plan(descriptor, budget)

        try:
            summary = self.reducer.reduce(input_store, output_store, plan, kind)
        except Exception:
            logger.error("Reduction failed; output store contents are invalid")
            raise

        logger.info("=" * 60)
        logger.info("Done: %d blocks, %.2f s", summary.blocks, summary.elapsed_seconds)
        logger.info("=" * 60)
        return summary

    def cancel(self):
        """Cancel a run in progress at the next block boundary."""
        self.reducer.cancel()
