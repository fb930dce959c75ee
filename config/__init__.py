"""Configuration management for seeq."""

from .loader import ConfigLoader, load_config
from .schema import SeeqSettings

__all__ = ["ConfigLoader", "SeeqSettings", "load_config"]
