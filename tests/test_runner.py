"""Test the file-to-file runner."""

import pytest
import numpy as np
import xarray as xr

from blockstat.runner import load_user_config_dict, open_input_store, run_reduction
from blockstat.stores import NetCDFArrayStore, RawBinaryArrayStore

pytestmark = pytest.mark.integration


@pytest.fixture
def raw_cube(temp_dir, example_cube):
    path = temp_dir / "cube.f8"
    RawBinaryArrayStore.from_array(path, example_cube).close()
    return path


@pytest.fixture
def nc_cube(temp_dir, example_cube):
    path = temp_dir / "cube.nc"
    xr.Dataset({"precip": (("y", "x", "time"), example_cube)}).to_netcdf(path)
    return path


def test_load_user_config_dict(temp_dir):
    cfg = temp_dir / "user_config.py"
    cfg.write_text('CONFIG = {"MAX_MEMORY": "1MB", "REDUCTION": "max"}\n')
    assert load_user_config_dict(cfg) == {"MAX_MEMORY": "1MB", "REDUCTION": "max"}


def test_load_user_config_missing(temp_dir):
    with pytest.raises(FileNotFoundError):
        load_user_config_dict(temp_dir / "nope.py")


def test_load_user_config_without_dict(temp_dir):
    cfg = temp_dir / "empty.py"
    cfg.write_text("x = 1\n")
    with pytest.raises(ValueError, match="No CONFIG"):
        load_user_config_dict(cfg)


def test_open_input_store_by_suffix(raw_cube, nc_cube):
    with open_input_store(raw_cube) as store:
        assert isinstance(store, RawBinaryArrayStore)
    with open_input_store(nc_cube, variable="precip", layer_dim="time") as store:
        assert isinstance(store, NetCDFArrayStore)


def test_netcdf_needs_variable(nc_cube):
    with pytest.raises(ValueError, match="variable"):
        open_input_store(nc_cube)


def test_run_mean_from_raw(raw_cube, temp_dir, restore_root_logging):
    out = temp_dir / "mean.f8"
    summary = run_reduction(raw_cube, out, user_overrides={
        "MAX_MEMORY": 192, "COPIES_NEEDED": 1, "REDUCTION": "mean",
    })

    assert summary.blocks == 5
    with RawBinaryArrayStore.open(out) as store:
        values = store.read_rows(0, 10)[:, :, 0]
    assert values[0, 0] == 3.0
    assert np.isnan(values[0, 1])


def test_run_count_from_netcdf_with_config_file(nc_cube, temp_dir, restore_root_logging):
    cfg = temp_dir / "user_config.py"
    cfg.write_text('CONFIG = {"REDUCTION": "count", "MAX_MEMORY": "1KB"}\n')
    out = temp_dir / "count.i8"

    summary = run_reduction(nc_cube, out, variable="precip", layer_dim="time",
                            user_config_path=cfg, user_overrides={"WORKERS": 2})

    assert summary.kind == "count"
    assert summary.workers == 2
    with RawBinaryArrayStore.open(out) as store:
        assert store.nodata == -1
        values = store.read_rows(0, 10)[:, :, 0]
    assert values.dtype == np.int64
    assert values[0, 0] == 2
    assert values[0, 1] == -1


def test_run_missing_input(temp_dir, restore_root_logging):
    with pytest.raises(FileNotFoundError):
        run_reduction(temp_dir / "nope.f8", temp_dir / "out.f8")
