"""Configuration loader with YAML and environment variable support.

This module provides a configuration loader that reads from ~/.config/blockwriter/config.yaml
and allows environment variable overrides using BLOCKWRITER_* prefix.

Environment variables:
- BLOCKWRITER_EDITOR_AUTOSAVE_DELAY: Override autosave quiet period (seconds)
- BLOCKWRITER_EDITOR_DEFAULT_GOAL: Override default word count goal
- BLOCKWRITER_STORAGE_BACKEND: Override storage backend ("local" or "supabase")
- BLOCKWRITER_STORAGE_LOCAL_PATH: Override local chapter directory
- BLOCKWRITER_SUPABASE_URL: Override Supabase project URL
- BLOCKWRITER_SUPABASE_ANON_KEY: Override Supabase anon key
- BLOCKWRITER_SUPABASE_ACCESS_TOKEN: Override Supabase session token
"""

import os
import stat
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from blockwriter.models.config import Config
from blockwriter.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "blockwriter" / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    A missing config file is not an error: defaults (local storage) apply.

    Args:
        config_path: Path to config file. If None, uses ~/.config/blockwriter/config.yaml

    Returns:
        Validated Config object

    Raises:
        PermissionError: If a file holding Supabase credentials is group/world readable
        ValueError: If config file is invalid
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        with config_path.open() as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {config_path} must contain a YAML mapping")
        if data.get("supabase"):
            _check_permissions(config_path)
    else:
        data = {}

    data = _apply_env_overrides(data)

    logger.debug("config_loaded", path=str(config_path), sections=sorted(data))
    return Config(**data)


def _check_permissions(path: Path) -> None:
    """Reject credential-bearing config files readable by group or others."""
    mode = os.stat(path).st_mode
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        raise PermissionError(
            f"Config file has overly permissive permissions: {oct(mode)}\n"
            f"Run: chmod 600 {path}"
        )


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration data.

    Environment variables use the format: BLOCKWRITER_SECTION_KEY
    For example: BLOCKWRITER_STORAGE_BACKEND sets data['storage']['backend']

    Args:
        data: Base configuration dictionary from YAML

    Returns:
        Configuration dictionary with environment overrides applied
    """
    editor = dict(data.get("editor") or {})
    storage = dict(data.get("storage") or {})
    supabase = dict(data.get("supabase") or {})

    # Editor overrides
    if env_delay := os.getenv("BLOCKWRITER_EDITOR_AUTOSAVE_DELAY"):
        try:
            editor["autosave_delay_seconds"] = float(env_delay)
        except ValueError:
            logger.warning("config_env_ignored", variable="BLOCKWRITER_EDITOR_AUTOSAVE_DELAY", value=env_delay)

    if env_goal := os.getenv("BLOCKWRITER_EDITOR_DEFAULT_GOAL"):
        try:
            editor["default_goal"] = int(env_goal)
        except ValueError:
            logger.warning("config_env_ignored", variable="BLOCKWRITER_EDITOR_DEFAULT_GOAL", value=env_goal)

    # Storage overrides
    if env_backend := os.getenv("BLOCKWRITER_STORAGE_BACKEND"):
        storage["backend"] = env_backend

    if env_local_path := os.getenv("BLOCKWRITER_STORAGE_LOCAL_PATH"):
        storage["local_path"] = env_local_path

    # Supabase overrides
    if env_url := os.getenv("BLOCKWRITER_SUPABASE_URL"):
        supabase["url"] = env_url

    if env_anon_key := os.getenv("BLOCKWRITER_SUPABASE_ANON_KEY"):
        supabase["anon_key"] = env_anon_key

    if env_token := os.getenv("BLOCKWRITER_SUPABASE_ACCESS_TOKEN"):
        supabase["access_token"] = env_token

    result = dict(data)
    if editor:
        result["editor"] = editor
    if storage:
        result["storage"] = storage
    if supabase:
        result["supabase"] = supabase
    return result
