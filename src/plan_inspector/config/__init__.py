"""Simple YAML-only configuration management for plan inspector."""

from plan_inspector.config.loader import load_config
from plan_inspector.config.schema import EngineConfig, InspectorConfig, ThresholdsConfig

__all__ = [
    "EngineConfig",
    "InspectorConfig",
    "ThresholdsConfig",
    "load_config",
]
