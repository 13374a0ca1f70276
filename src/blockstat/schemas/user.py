"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with upper-case
aliases for common settings (e.g., MAX_MEMORY → budget.max_bytes,
REDUCTION → reduction.kind).

UserConfig is intentionally minimal - users only specify what they want to
override from the expert defaults. Memory sizes may be given as integers
(bytes) or strings such as "512MB" or "2 GiB".
"""

import re
from typing import Optional, Any
from pydantic import Field, field_validator
from blockstat.schemas.base import BlockstatBaseModel


_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "kb": 1000, "mb": 1000 ** 2, "gb": 1000 ** 3, "tb": 1000 ** 4,
    "kib": 1024, "mib": 1024 ** 2, "gib": 1024 ** 3, "tib": 1024 ** 4,
}
_SIZE_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*([a-zA-Z]*)\s*$")


def parse_byte_size(value: Any) -> Optional[int]:
    """Parse ``512MB``, ``2 GiB`` or an int into a byte count.

    Examples
    --------
    >>> parse_byte_size("512MB")
    512000000
    >>> parse_byte_size("2 GiB")
    2147483648
    """
    if value is None or isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _SIZE_RE.match(str(value))
    if not match:
        raise ValueError(f"Cannot parse memory size: {value!r}")
    number, unit = match.groups()
    unit = unit.lower()
    if unit not in _SIZE_UNITS:
        raise ValueError(f"Unknown memory unit '{unit}' in {value!r}")
    return int(float(number) * _SIZE_UNITS[unit])


class UserBudgetConfig(BlockstatBaseModel):
    """User-facing budget config."""
    max_bytes: Optional[int] = None
    memory_fraction: Optional[float] = None
    copies_needed: Optional[int] = None

    @field_validator("max_bytes", mode="before")
    @classmethod
    def coerce_max_bytes(cls, v):
        """Accept sizes like '512MB'."""
        return parse_byte_size(v)


class UserReductionConfig(BlockstatBaseModel):
    """User-facing reduction config."""
    kind: Optional[str] = None
    copies_by_kind: Optional[dict[str, int]] = None

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        """Normalize reduction names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserConfig(BlockstatBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            max_memory="2GB",
            reduction="mean",
            workers=4,
        )

        internal = resolve_config(param_cfg, user_cfg)
    """

    # Flat aliases
    max_memory: Optional[int] = Field(None, alias="MAX_MEMORY")
    memory_fraction: Optional[float] = Field(None, alias="MEMORY_FRACTION")
    copies_needed: Optional[int] = Field(None, alias="COPIES_NEEDED")
    reduction_kind: Optional[str] = Field(None, alias="REDUCTION")
    workers: Optional[int] = Field(None, alias="WORKERS")
    log_level: Optional[str] = Field(None, alias="LOG_LEVEL")
    log_file: Optional[str] = Field(None, alias="LOG_FILE")

    # Nested overrides (advanced users)
    budget: Optional[UserBudgetConfig] = None
    reduction: Optional[UserReductionConfig] = None
    engine: Optional[dict[str, Any]] = None
    output: Optional[dict[str, Any]] = None

    model_config = BlockstatBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("max_memory", mode="before")
    @classmethod
    def coerce_max_memory(cls, v):
        """Accept sizes like '512MB'."""
        return parse_byte_size(v)

    @field_validator("reduction_kind", mode="before")
    @classmethod
    def normalize_reduction_kind(cls, v):
        """Normalize reduction names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        # Budget section
        budget = {}
        if self.max_memory is not None:
            budget["max_bytes"] = self.max_memory
        if self.memory_fraction is not None:
            budget["memory_fraction"] = self.memory_fraction
        if self.copies_needed is not None:
            budget["copies_needed"] = self.copies_needed

        # Merge with explicit budget config
        if self.budget is not None:
            budget.update(self.budget.model_dump(exclude_none=True))

        if budget:
            overrides["budget"] = budget

        # Reduction section
        reduction = {}
        if self.reduction_kind is not None:
            reduction["kind"] = self.reduction_kind

        if self.reduction is not None:
            reduction.update(self.reduction.model_dump(exclude_none=True))

        if reduction:
            overrides["reduction"] = reduction

        # Engine section
        engine = {}
        if self.workers is not None:
            engine["workers"] = self.workers
        if self.engine is not None:
            engine.update(self.engine)
        if engine:
            overrides["engine"] = engine

        if self.output is not None:
            overrides["output"] = dict(self.output)

        # Logging section
        logging_cfg = {}
        if self.log_level is not None:
            logging_cfg["level"] = self.log_level
        if self.log_file is not None:
            logging_cfg["log_file"] = self.log_file
        if logging_cfg:
            overrides["logging"] = logging_cfg

        return overrides
