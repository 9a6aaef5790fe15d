"""Configuration module for chatpilot."""

from chatpilot.config.loader import load_config, get_config_path
from chatpilot.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
