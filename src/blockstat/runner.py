"""File-to-file reduction runner.

Loads a user config, resolves it, opens the input file, creates a raw
binary output and runs the orchestrator. There is no argument parsing here;
scripts that want a command line wrap run_reduction().
"""

import importlib.util
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from blockstat.core.types import ArrayDescriptor, ReductionSummary
from blockstat.pipeline.orchestrator import ReductionOrchestrator, output_layout
from blockstat.schemas import resolve_config, ParamConfig, UserConfig
from blockstat.stores.base import ArrayStore
from blockstat.stores.netcdf import NetCDFArrayStore
from blockstat.stores.raw import RawBinaryArrayStore

__all__ = ['run_reduction', 'load_user_config_dict', 'open_input_store']

logger = logging.getLogger(__name__)


def load_user_config_dict(config_path: Union[str, Path]) -> dict:
    """Load user config dict from a Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str or Path
        Path to a Python file defining a ``CONFIG`` dict.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Could not load config module from {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    # Find CONFIG dict
    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def open_input_store(path: Union[str, Path], variable: Optional[str] = None,
                     layer_dim: Optional[str] = None) -> ArrayStore:
    """Open ``path`` as a NetCDF (``.nc``) or raw binary input store."""
    path = Path(path)
    if path.suffix in (".nc", ".nc4", ".cdf"):
        if variable is None:
            raise ValueError("variable is required for NetCDF input")
        return NetCDFArrayStore(path, variable, layer_dim=layer_dim)
    return RawBinaryArrayStore.open(path, mode="r")


def run_reduction(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    variable: Optional[str] = None,
    layer_dim: Optional[str] = None,
    user_config_path: Optional[Union[str, Path]] = None,
    user_overrides: Optional[Dict[str, Any]] = None,
    verbose: bool = False,
) -> ReductionSummary:
    """Reduce an on-disk array file into a raw binary output file.

    Parameters
    ----------
    input_path : str or Path
        NetCDF file or raw binary file (with ``.json`` sidecar).
    output_path : str or Path
        Raw binary output file; a ``.json`` sidecar is written next to it.
    variable : str, optional
        NetCDF variable name. Required for NetCDF input.
    layer_dim : str, optional
        NetCDF dimension to reduce across (default: the variable's first).
    user_config_path : str or Path, optional
        Python file with a ``CONFIG`` dict.
    user_overrides : dict, optional
        UserConfig-compatible overrides applied on top of the file config.
    verbose : bool, optional
        DEBUG logging and print of the resolved configuration.

    Returns
    -------
    ReductionSummary

    Raises
    ------
    FileNotFoundError
        If the input or config file does not exist.
    ValidationError
        If configuration validation fails.
    StoreReadError, StoreWriteError
        On block I/O failure; the output file is then invalid.

    Examples
    --------
    ::

        run_reduction("cube.nc", "mean.f8", variable="precip",
                      user_overrides={"MAX_MEMORY": "256MB", "REDUCTION": "mean"})
    """
    user_dict = load_user_config_dict(user_config_path) if user_config_path else {}
    if user_overrides:
        user_dict = {**user_dict, **user_overrides}
    if verbose:
        user_dict = {**user_dict, "LOG_LEVEL": "DEBUG"}

    config = resolve_config(ParamConfig(), UserConfig.model_validate(user_dict))
    kind = config.reduction.kind

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2))
        print('=' * 60)

    with open_input_store(input_path, variable, layer_dim) as input_store:
        descriptor = ArrayDescriptor.from_store(input_store)
        dtype, nodata = output_layout(kind, config)
        with RawBinaryArrayStore.create(output_path, descriptor.row_count, descriptor.col_count,
                                        dtype=dtype, nodata=nodata) as output_store:
            orchestrator = ReductionOrchestrator(config)
            summary = orchestrator.run(input_store, output_store, kind)

    logger.info("Output written: %s", output_path)
    return summary
