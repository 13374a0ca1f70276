"""Test ReductionOrchestrator wiring of config, planner and reducer."""

import logging
from types import SimpleNamespace

import pytest
import numpy as np

from blockstat.core import MemoryBudget
from blockstat.errors import StoreReadError, ReductionCancelled
from blockstat.pipeline import ReductionOrchestrator
from blockstat.pipeline.orchestrator import output_layout
from blockstat.stores import InMemoryArrayStore

from tests.helpers.fake_stores import FailingReadStore

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


def test_orchestrator_initialization(make_config):
    config = make_config(workers=3)
    orch = ReductionOrchestrator(config, setup_logging=False)

    assert orch.config == config
    assert orch.planner.workers == 3
    assert orch.reducer.workers == 3


def test_build_budget_absolute(make_config):
    orch = ReductionOrchestrator(make_config(max_memory="1KB"), setup_logging=False)

    budget = orch.build_budget("mean")
    assert isinstance(budget, MemoryBudget)
    assert budget.resolve() == 1000
    assert budget.copies_needed == 2
    assert orch.build_budget("sum").copies_needed == 1


def test_build_budget_from_available_memory(make_config, monkeypatch):
    import psutil

    monkeypatch.setattr(psutil, "virtual_memory", lambda: SimpleNamespace(available=2000))
    orch = ReductionOrchestrator(make_config(memory_fraction=0.25), setup_logging=False)

    assert orch.build_budget("max").resolve() == 500


def test_plan_uses_config_kind(make_config, example_store):
    """Default kind is mean, whose two copies halve the block height."""
    orch = ReductionOrchestrator(make_config(max_memory=384), setup_logging=False)

    assert orch.plan(example_store).rows_per_block == 2
    assert orch.plan(example_store, "sum").rows_per_block == 4


def test_run_mean(make_config, example_store, float_output):
    orch = ReductionOrchestrator(make_config(max_memory=192, copies_needed=1),
                                 setup_logging=False)
    summary = orch.run(example_store, float_output)

    assert summary.kind == "mean"
    assert summary.blocks == 5
    assert float_output.data[0, 0, 0] == 3.0
    assert np.isnan(float_output.data[0, 1, 0])


def test_run_parallel(make_config, large_cube):
    config = make_config(max_memory=640 * 12, copies_needed=1, workers=4)
    orch = ReductionOrchestrator(config, setup_logging=False)

    out = InMemoryArrayStore.empty(64, 16)
    summary = orch.run(InMemoryArrayStore(large_cube), out, "sum")

    assert summary.workers == 4
    assert summary.blocks == 22


def test_run_failure_logged_and_raised(make_config, example_cube, float_output, caplog):
    orch = ReductionOrchestrator(make_config(max_memory=192, copies_needed=1),
                                 setup_logging=False)
    src = FailingReadStore(example_cube, fail_row=2)

    with caplog.at_level(logging.ERROR):
        with pytest.raises(StoreReadError):
            orch.run(src, float_output)
    assert "output store contents are invalid" in caplog.text


def test_cancel_before_run(make_config, example_store, float_output):
    orch = ReductionOrchestrator(make_config(max_memory=192), setup_logging=False)
    orch.cancel()
    with pytest.raises(ReductionCancelled):
        orch.run(example_store, float_output)


def test_output_layout(make_config, internal_config):
    assert output_layout("count", internal_config) == (np.dtype("int64"), -1)
    assert output_layout("mean", internal_config) == (np.dtype("float64"), None)

    config = make_config(output={"float_dtype": "float32", "count_nodata": -99})
    assert output_layout("max", config) == (np.dtype("float32"), None)
    assert output_layout("count", config) == (np.dtype("int64"), -99)


def test_logging_setup_writes_file(make_config, temp_dir, example_store, float_output,
                                   restore_root_logging):
    log_file = temp_dir / "logs" / "run.log"
    config = make_config(max_memory=192, copies_needed=1, log_level="DEBUG",
                         log_file=str(log_file))
    orch = ReductionOrchestrator(config)
    orch.run(example_store, float_output)

    assert restore_root_logging.level == logging.DEBUG
    text = log_file.read_text()
    assert "Starting mean reduction" in text
    assert " - blockstat.pipeline.orchestrator - INFO - " in text
