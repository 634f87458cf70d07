"""Simple YAML configuration loader for plan inspector.

Loads configuration from YAML file or uses defaults.
"""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from plan_inspector.config.schema import InspectorConfig
from plan_inspector.rule_engine.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


def load_config(config_path: str | Path | None = None) -> InspectorConfig:
    """Load configuration from YAML file or use defaults.

    Args:
        config_path: Path to YAML config file (optional)

    Returns:
        InspectorConfig: Validated configuration object

    Raises:
        FileNotFoundError: If config_path specified but doesn't exist
        ConfigurationError: If the YAML or a configured value is invalid
    """
    if config_path is None:
        logger.info("Using default configuration")
        return InspectorConfig()

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config_dict is None:
        logger.warning("Empty configuration file, using defaults", path=str(path))
        return InspectorConfig()

    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration in {config_path} must be a mapping, got {type(config_dict).__name__}"
        )

    try:
        config = InspectorConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.info("Configuration loaded", path=str(path), detectors=len(config.detectors))
    return config
