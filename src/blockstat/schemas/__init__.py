"""Pydantic configuration schemas for blockstat.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
"""

from blockstat.schemas.resolve import resolve_config
from blockstat.schemas.internal import InternalConfig
from blockstat.schemas.param import ParamConfig
from blockstat.schemas.user import UserConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
]
