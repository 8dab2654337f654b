"""Configuration module."""

from docbot.core.config.loader import load_config
from docbot.core.config.schema import Config

__all__ = ["Config", "load_config"]
