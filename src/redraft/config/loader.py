"""Configuration loader with YAML and environment variable support.

This module provides a configuration loader that reads from ~/.config/redraft/config.yaml
and allows environment variable overrides using REDRAFT_* prefix.

Environment variables:
- REDRAFT_LLM_ENDPOINT: Override model API endpoint
- REDRAFT_LLM_API_KEY: Override model API key
- REDRAFT_LLM_DEFAULT_MODEL: Override default model selector
- REDRAFT_STORAGE_VERSIONS_DIR: Override snapshot directory
- REDRAFT_SERVER_HOST: Override server bind address
- REDRAFT_SERVER_PORT: Override server port
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from redraft.models.config import Configuration
from redraft.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "redraft" / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> Configuration:
    """Load configuration from YAML file with environment variable overrides.

    A missing config file is not an error: every setting has a default, and
    environment variables can fill in the rest.

    Args:
        config_path: Path to config file. If None, uses ~/.config/redraft/config.yaml

    Returns:
        Validated Configuration object

    Raises:
        FileNotFoundError: If an explicit config_path doesn't exist
        ValueError: If the YAML is malformed or not a mapping
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Configuration in {config_path} must be a mapping")
    elif explicit:
        raise FileNotFoundError(f"Configuration file not found at {config_path}")
    else:
        data = {}

    data = _apply_env_overrides(data)

    logger.debug("config_loaded", path=str(config_path), sections=sorted(data.keys()))

    return Configuration(**data)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data.

    Environment variables use the format: REDRAFT_SECTION_KEY
    For example: REDRAFT_LLM_ENDPOINT sets data['llm']['endpoint']

    Args:
        data: Base configuration dictionary from YAML

    Returns:
        Configuration dictionary with environment overrides applied
    """
    for section in ("llm", "storage", "server"):
        if not isinstance(data.get(section), dict):
            data[section] = {}

    if env_endpoint := os.getenv("REDRAFT_LLM_ENDPOINT"):
        data["llm"]["endpoint"] = env_endpoint

    if env_api_key := os.getenv("REDRAFT_LLM_API_KEY"):
        data["llm"]["api_key"] = env_api_key

    if env_model := os.getenv("REDRAFT_LLM_DEFAULT_MODEL"):
        data["llm"]["default_model"] = env_model

    if env_versions_dir := os.getenv("REDRAFT_STORAGE_VERSIONS_DIR"):
        data["storage"]["versions_dir"] = env_versions_dir

    if env_host := os.getenv("REDRAFT_SERVER_HOST"):
        data["server"]["host"] = env_host

    if env_port := os.getenv("REDRAFT_SERVER_PORT"):
        try:
            data["server"]["port"] = int(env_port)
        except ValueError:
            pass  # Invalid value, ignore

    return data
