"""Root-level pytest fixtures for the blockstat test suite.

Provides shared configuration fixtures and small example cubes. Tests that
need a config use these fixtures instead of building raw dicts.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

import numpy as np

from blockstat.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_small_budget(make_config):
    ...     config = make_config(max_memory=192, copies_needed=1)
    ...     assert config.budget.max_bytes == 192
    """
    def _make(**user_overrides):
        if user_overrides:
            return resolve_config(param_config, UserConfig(**user_overrides))
        return resolve_config(param_config, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


# =============================================================================
# Array Fixtures
# =============================================================================

@pytest.fixture
def example_cube():
    """10 rows x 4 cols x 3 layers of float64 (96 bytes per row).

    - cell (0, 0) = [2.0, missing, 4.0]
    - cell (0, 1) = all missing
    - cell (5, 2) has its middle layer missing
    """
    rng = np.random.default_rng(42)
    data = rng.uniform(-5.0, 10.0, size=(10, 4, 3))
    data[0, 0] = [2.0, np.nan, 4.0]
    data[0, 1] = [np.nan, np.nan, np.nan]
    data[5, 2, 1] = np.nan
    return data


@pytest.fixture
def large_cube():
    """64 x 16 x 5 float64 cube with ~20% missing values and a few empty cells."""
    rng = np.random.default_rng(7)
    data = rng.normal(10.0, 3.0, size=(64, 16, 5))
    data[rng.random(data.shape) < 0.2] = np.nan
    data[3, :4] = np.nan
    data[40, 10] = np.nan
    return data


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def restore_root_logging():
    """Undo the root-logger setup done by ReductionOrchestrator."""
    import logging

    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
