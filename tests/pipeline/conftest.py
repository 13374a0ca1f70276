"""Pipeline test fixtures."""

import pytest

from blockstat.core import ArrayDescriptor, MemoryBudget
from blockstat.planning import plan
from blockstat.stores import InMemoryArrayStore


@pytest.fixture
def example_store(example_cube):
    return InMemoryArrayStore(example_cube)


@pytest.fixture
def example_plan(example_store):
    """Two rows per block: [(0,2), (2,2), (4,2), (6,2), (8,2)]."""
    return plan(ArrayDescriptor.from_store(example_store), MemoryBudget(max_bytes=192))


@pytest.fixture
def float_output(example_cube):
    rows, cols, _ = example_cube.shape
    return InMemoryArrayStore.empty(rows, cols)
