"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and frozen.
"""

from typing import Literal, Optional
from pydantic import ConfigDict, Field
from blockstat.schemas.base import BlockstatBaseModel


class InternalBudgetConfig(BlockstatBaseModel):
    """Runtime memory budget."""
    max_bytes: Optional[int] = Field(gt=0)
    memory_fraction: float = Field(gt=0, le=1.0)
    copies_needed: Optional[int] = Field(ge=1)


class InternalReductionConfig(BlockstatBaseModel):
    """Runtime reduction selection."""
    kind: Literal["sum", "mean", "count", "min", "max"]
    copies_by_kind: dict[str, int]


class InternalEngineConfig(BlockstatBaseModel):
    """Runtime execution settings."""
    workers: int = Field(ge=1, le=64)


class InternalOutputConfig(BlockstatBaseModel):
    """Runtime output settings."""
    float_dtype: Literal["float64", "float32"]
    count_nodata: int


class InternalLoggingConfig(BlockstatBaseModel):
    """Runtime logging settings."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    log_file: Optional[str]


class InternalConfig(BlockstatBaseModel):
    """Authoritative runtime configuration.

    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.workers = config.engine.workers  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation in runtime code
    """

    budget: InternalBudgetConfig
    reduction: InternalReductionConfig
    engine: InternalEngineConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )

    def copies_for(self, kind: str) -> int:
        """Copies multiplier for ``kind``: explicit override, else per-kind default."""
        if self.budget.copies_needed is not None:
            return self.budget.copies_needed
        return self.reduction.copies_by_kind[kind]
