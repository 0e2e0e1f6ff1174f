"""Configuration loader with YAML and environment variable support.

Reads ~/.config/limnl/config.yaml when present and applies LIMNL_*
environment overrides. A missing file is not an error: every setting
has a default, and the LLM provider defaults to disabled.

Environment variables:
- LIMNL_LLM_PROVIDER: disabled, ollama, openai or anthropic
- LIMNL_OLLAMA_URL / LIMNL_OLLAMA_MODEL
- LIMNL_OPENAI_API_KEY / LIMNL_OPENAI_MODEL
- LIMNL_ANTHROPIC_API_KEY / LIMNL_ANTHROPIC_MODEL
- LIMNL_DATABASE_PATH
"""

import os
import stat
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from limnl.models.config import AppConfig
from limnl.utils.logging import get_logger


logger = get_logger(__name__)

# (environment variable, section, key)
_ENV_OVERRIDES = (
    ("LIMNL_LLM_PROVIDER", "llm", "provider"),
    ("LIMNL_OLLAMA_URL", "llm", "ollama_url"),
    ("LIMNL_OLLAMA_MODEL", "llm", "ollama_model"),
    ("LIMNL_OPENAI_API_KEY", "llm", "openai_api_key"),
    ("LIMNL_OPENAI_MODEL", "llm", "openai_model"),
    ("LIMNL_ANTHROPIC_API_KEY", "llm", "anthropic_api_key"),
    ("LIMNL_ANTHROPIC_MODEL", "llm", "anthropic_model"),
    ("LIMNL_DATABASE_PATH", "database", "path"),
)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config file. If None, uses ~/.config/limnl/config.yaml

    Returns:
        Validated AppConfig

    Raises:
        PermissionError: If the config file is readable by group or others
        ValueError: If the file is not valid YAML or fails validation
    """
    if config_path is None:
        config_path = Path.home() / ".config" / "limnl" / "config.yaml"

    data: Dict[str, Any] = {}
    if config_path.exists():
        # The file may hold API keys; it must be 600
        mode = os.stat(config_path).st_mode
        if mode & (stat.S_IRWXG | stat.S_IRWXO):
            logger.error("config_permission_error", path=str(config_path), mode=oct(mode))
            raise PermissionError(
                f"Config file has overly permissive permissions: {oct(mode)}\n"
                f"Run: chmod 600 {config_path}"
            )
        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
        logger.info("config_loaded", path=str(config_path))
    else:
        logger.debug("config_file_missing", path=str(config_path))

    data = _apply_env_overrides(data)

    try:
        return AppConfig(**data)
    except ValidationError as e:
        logger.error("config_validation_error", path=str(config_path), error=str(e))
        raise ValueError(f"Configuration validation failed: {e}") from e


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply LIMNL_* environment variables on top of file values.

    Args:
        data: Base configuration dictionary from YAML

    Returns:
        Configuration dictionary with environment overrides applied
    """
    for env_name, section, key in _ENV_OVERRIDES:
        if value := os.getenv(env_name):
            data.setdefault(section, {})[key] = value
    return data
