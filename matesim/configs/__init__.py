"""Configuration loading module."""

from .loader import load_config, validate_config, get_config_value, set_config_value

__all__ = ["load_config", "validate_config", "get_config_value", "set_config_value"]
