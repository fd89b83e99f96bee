"""
Configuration module for the schema engine.
Handles loading and validation of engine configuration including:
- Validator cache bounds
- Reference resolution limits
- Schema registry preloading and remote fetching
"""
from pydantic import BaseModel, Field, ValidationError
from typing import List
import yaml
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class EngineConfig(BaseModel):
    """
    Main engine configuration.
    """

    # Validator cache
    cache_capacity: int = Field(
        default=100,
        description="Maximum number of compiled validators kept in the cache",
        ge=1
    )

    max_ref_hops: int = Field(
        default=64,
        description="Maximum number of chained $ref hops followed before giving up",
        ge=1
    )

    # Schema registry
    preload_builtin_schemas: bool = Field(
        default=True,
        description="Register the bundled draft-04 metaschema"
    )

    schema_paths: List[str] = Field(
        default_factory=list,
        description="Schema files or directories registered at startup"
    )

    allow_remote: bool = Field(
        default=False,
        description="Fetch unknown http(s) schema URIs on first reference"
    )

    remote_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for remote schema fetches in seconds",
        gt=0.0
    )

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "example": {
                "cache_capacity": 500,
                "max_ref_hops": 32,
                "preload_builtin_schemas": True,
                "schema_paths": ["schemas/"],
                "allow_remote": False,
                "remote_timeout_seconds": 5.0
            }
        }


def load_config(config_path: str | Path) -> EngineConfig:
    """
    Load engine configuration from YAML file.

    Args:
        config_path: Path to configuration file (YAML format)

    Returns:
        Validated EngineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML configuration: {e}") from e

    if not config_data:
        logger.warning(f"Empty config file at {config_path}, using defaults")
        return EngineConfig()

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration in {config_path} must be a mapping")

    try:
        config = EngineConfig(**config_data)
    except ValidationError as e:
        raise ValueError(f"Failed to load configuration: {e}") from e

    logger.info(f"Loaded engine configuration from {config_path}")
    logger.info(f"  - Cache capacity: {config.cache_capacity}")
    logger.info(f"  - Schema paths: {config.schema_paths}")
    logger.info(f"  - Remote fetching: {config.allow_remote}")

    return config


def get_default_config() -> EngineConfig:
    """
    Get default engine configuration.

    Returns:
        EngineConfig with sensible defaults
    """
    return EngineConfig()
