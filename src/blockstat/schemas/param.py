"""ParamConfig: Expert defaults for blockstat runs.

This module defines the complete default configuration. ALL run parameters
must have defaults here. No runtime code should define fallback values.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from blockstat.schemas.base import BlockstatBaseModel


ReductionName = Literal["sum", "mean", "count", "min", "max"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Nested Configuration Models
# =============================================================================

class BudgetConfig(BlockstatBaseModel):
    """Memory budget configuration.

    If ``max_bytes`` is set it is used as an absolute ceiling; otherwise the
    ceiling is ``memory_fraction`` of the memory available when the run starts.
    """
    max_bytes: Optional[int] = Field(None, gt=0, description="Absolute byte ceiling")
    memory_fraction: float = Field(0.5, gt=0, le=1.0, description="Fraction of available memory")
    copies_needed: Optional[int] = Field(
        None, ge=1, description="Override of the per-reduction copies multiplier"
    )


class ReductionConfig(BlockstatBaseModel):
    """Reduction selection and per-kind memory multipliers."""
    kind: ReductionName = "mean"
    copies_by_kind: dict[str, int] = Field(
        default_factory=lambda: {
            "sum": 1,
            "mean": 2,
            "count": 1,
            "min": 1,
            "max": 1,
        }
    )

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v):
        """Normalize reduction names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @model_validator(mode="after")
    def check_copies_cover_kinds(self):
        """Every reduction kind needs a positive multiplier."""
        for name in ("sum", "mean", "count", "min", "max"):
            copies = self.copies_by_kind.get(name)
            if copies is None or copies < 1:
                raise ValueError(f"copies_by_kind['{name}'] must be >= 1, got {copies}")
        return self


class EngineConfig(BlockstatBaseModel):
    """Execution settings."""
    workers: int = Field(1, ge=1, le=64, description="Blocks processed concurrently")


class OutputConfig(BlockstatBaseModel):
    """Output store configuration."""
    float_dtype: Literal["float64", "float32"] = "float64"
    count_nodata: int = Field(-1, lt=0, description="Missing marker for count output")


class LoggingConfig(BlockstatBaseModel):
    """Logging configuration."""
    level: LogLevel = "INFO"
    log_file: Optional[str] = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(BlockstatBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all run parameters.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg)
    """

    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    reduction: ReductionConfig = Field(default_factory=ReductionConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
