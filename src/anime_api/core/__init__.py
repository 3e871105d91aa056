"""Core module - configuration, logging, exceptions and models."""

from anime_api.core.core_config import build_config, load_config
from anime_api.core.exceptions import ConfigurationError
from anime_api.core.logger import get_loggers

__all__ = [
    "ConfigurationError",
    "build_config",
    "get_loggers",
    "load_config",
]
