"""Load and save the JSON configuration file (camelCase on disk, snake_case in code)."""

import json
import re
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from kubesafe.config.schema import Config
from kubesafe.utils.helpers import get_data_dir, write_text_atomic


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return get_data_dir() / "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    first, *rest = name.split("_")
    return first + "".join(word.capitalize() for word in rest)


def convert_keys(data: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from disk.

    A missing, empty, or invalid file yields the defaults (plus any
    KUBESAFE_* environment overrides); problems are logged, never raised.
    """
    path = config_path or get_config_path()

    if not path.exists():
        return Config()

    try:
        text = path.read_text(encoding="utf-8")
        if not text.strip():
            return Config()
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("top-level value must be an object")
        return Config(**convert_keys(data))
    except (json.JSONDecodeError, ValueError, ValidationError, OSError) as e:
        logger.warning(f"Invalid config at {path}, using defaults: {e}")
        return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Save configuration to disk in camelCase."""
    path = config_path or get_config_path()
    data = convert_to_camel(config.model_dump())
    write_text_atomic(path, json.dumps(data, indent=2) + "\n")
    return path
