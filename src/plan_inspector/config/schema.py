"""YAML configuration schema for plan inspector.

Simple Pydantic models for configuration validation.
"""

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from plan_inspector.detectors import DEFAULT_DETECTORS

logger = structlog.get_logger(__name__)

# Security: Allowed module prefixes for detector classes
ALLOWED_DETECTOR_MODULES = ["plan_inspector.detectors."]


class ThresholdsConfig(BaseModel):
    """Tunable rule thresholds."""

    window_function_threshold: int = Field(
        default=3,
        ge=0,
        description="Distinct window specifications per CTE tolerated before reporting"
    )
    union_fan_out_min_branches: int = Field(
        default=3,
        ge=2,
        description="UNION ALL branches over one source and column that trigger a finding"
    )
    nesting_depth_threshold: int = Field(
        default=3,
        ge=1,
        description="Subquery nesting depth at which a CTE is reported"
    )


class EngineConfig(BaseModel):
    """Rule engine execution settings."""

    max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Detectors evaluated concurrently (1 runs them sequentially)"
    )


class InspectorConfig(BaseModel):
    """Main plan inspector configuration."""

    # allowed_detector_modules must come BEFORE detectors
    allowed_detector_modules: list[str] = Field(
        default_factory=lambda: list(ALLOWED_DETECTOR_MODULES),
        description="Module prefixes allowed for detector loading (security control)"
    )
    detectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DETECTORS),
        description="Detector classes to enable, as module:Class or module.Class"
    )
    thresholds: ThresholdsConfig = Field(
        default_factory=ThresholdsConfig,
        description="Rule thresholds"
    )
    engine: EngineConfig = Field(
        default_factory=EngineConfig,
        description="Rule engine settings"
    )
    dialect: str = Field(
        default="snowflake",
        min_length=1,
        description="sqlglot dialect used to parse .sql input"
    )

    @field_validator("dialect")
    @classmethod
    def normalize_dialect(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("detectors")
    @classmethod
    def validate_detectors_not_empty(cls, v: list[str]) -> list[str]:
        """Validate at least one detector is enabled."""
        if not v:
            raise ValueError("At least one detector must be enabled")
        return v

    @model_validator(mode="after")
    def validate_detector_modules(self) -> "InspectorConfig":
        """Validate detectors are loaded from allowed modules only."""
        allowed_normalized = [
            allowed if allowed.endswith(".") else allowed + "."
            for allowed in self.allowed_detector_modules
        ]

        for detector_path in self.detectors:
            module_path = detector_module(detector_path)
            if not any((module_path + ".").startswith(allowed) for allowed in allowed_normalized):
                raise ValueError(
                    f"Detector '{detector_path}' is not from an allowed module. "
                    f"Allowed prefixes: {self.allowed_detector_modules}"
                )

            if not any((module_path + ".").startswith(p) for p in ALLOWED_DETECTOR_MODULES):
                logger.warning("Custom detector module enabled", detector=detector_path)

        return self


def detector_module(detector_path: str) -> str:
    """Module part of a ``module:Class`` or ``module.Class`` path."""
    if ":" in detector_path:
        return detector_path.split(":", 1)[0]
    return detector_path.rsplit(".", 1)[0]
