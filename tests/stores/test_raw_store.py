"""Test RawBinaryArrayStore (numpy.memmap + JSON sidecar)."""

import json

import pytest
import numpy as np
import xarray as xr

from blockstat.errors import StoreError, StoreReadError, StoreWriteError
from blockstat.stores import RawBinaryArrayStore

pytestmark = pytest.mark.unit


def test_create_writes_sidecar(temp_dir):
    path = temp_dir / "out.f8"
    with RawBinaryArrayStore.create(path, 6, 3) as store:
        assert store.dimensions() == (6, 3)
        assert store.layer_count() == 1

    meta = json.loads((temp_dir / "out.f8.json").read_text())
    assert meta["shape"] == [6, 3, 1]
    assert np.dtype(meta["dtype"]) == np.float64
    assert meta["nodata"] is None
    assert path.stat().st_size == 6 * 3 * 8


def test_create_fills_missing_value(temp_dir):
    with RawBinaryArrayStore.create(temp_dir / "f.f8", 2, 2) as store:
        assert np.isnan(store.read_rows(0, 2)).all()

    with RawBinaryArrayStore.create(temp_dir / "c.i8", 2, 2, dtype="int64", nodata=-1) as store:
        assert (store.read_rows(0, 2) == -1).all()


def test_from_array_roundtrip(temp_dir, example_cube):
    store = RawBinaryArrayStore.from_array(temp_dir / "cube.f8", example_cube)
    try:
        assert store.mode == "r"
        assert store.dimensions() == (10, 4)
        assert store.layer_count() == 3
        assert store.element_byte_size() == 8
        np.testing.assert_array_equal(store.read_rows(3, 4), example_cube[3:7])
    finally:
        store.close()


def test_open_keeps_nodata(temp_dir):
    data = np.array([[[1, -9999], [2, 3]]], dtype=np.int16)
    RawBinaryArrayStore.from_array(temp_dir / "i.i2", data, nodata=-9999).close()

    with RawBinaryArrayStore.open(temp_dir / "i.i2") as store:
        assert store.nodata == -9999
        assert store.element_byte_size() == 2
        assert store.read_rows(0, 1).dtype == np.int16


def test_open_without_sidecar(temp_dir):
    with pytest.raises(FileNotFoundError, match="Sidecar"):
        RawBinaryArrayStore.open(temp_dir / "missing.f8")


def test_open_with_missing_data_file(temp_dir):
    (temp_dir / "gone.f8.json").write_text(json.dumps(
        {"shape": [2, 2, 1], "dtype": "<f8", "nodata": None}
    ))
    with pytest.raises(StoreError, match="Cannot map"):
        RawBinaryArrayStore.open(temp_dir / "gone.f8")


def test_read_only_store_rejects_writes(temp_dir, example_cube):
    with RawBinaryArrayStore.from_array(temp_dir / "cube.f8", example_cube[:, :, :1]) as store:
        with pytest.raises(StoreWriteError, match="read-only"):
            store.write_rows(0, np.zeros((1, 4)))


def test_write_rows_persist(temp_dir):
    path = temp_dir / "out.f8"
    with RawBinaryArrayStore.create(path, 4, 2) as store:
        block = np.ma.MaskedArray([[1.0, 2.0]], mask=[[False, True]])
        store.write_rows(2, block)

    with RawBinaryArrayStore.open(path) as store:
        values = store.read_rows(0, 4)[:, :, 0]
    assert values[2, 0] == 1.0
    assert np.isnan(values[2, 1])
    assert np.isnan(values[:2]).all()


def test_read_outside_store(temp_dir):
    with RawBinaryArrayStore.create(temp_dir / "o.f8", 4, 2) as store:
        with pytest.raises(StoreReadError, match="outside store"):
            store.read_rows(3, 2)


def test_to_xarray_single_layer(temp_dir):
    path = temp_dir / "count.i8"
    with RawBinaryArrayStore.create(path, 2, 2, dtype="int64", nodata=-1) as store:
        store.write_rows(0, np.array([[4, 0]], dtype=np.int64))
        da = store.to_xarray()

    assert isinstance(da, xr.DataArray)
    assert da.dims == ("y", "x")
    assert da.name == "count"
    assert da.dtype == np.float64
    assert da.values[0, 0] == 4.0
    assert np.isnan(da.values[1]).all()
    assert da.attrs["source"] == str(path)


def test_to_xarray_multi_layer(temp_dir, example_cube):
    with RawBinaryArrayStore.from_array(temp_dir / "cube.f8", example_cube) as store:
        da = store.to_xarray(name="cube")
    assert da.dims == ("y", "x", "layer")
    assert da.shape == (10, 4, 3)


def test_close_is_idempotent(temp_dir):
    store = RawBinaryArrayStore.create(temp_dir / "x.f8", 2, 2)
    store.close()
    store.close()
