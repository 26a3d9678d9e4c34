"""Configuration module for kubesafe."""

from kubesafe.config.loader import load_config, get_config_path
from kubesafe.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
