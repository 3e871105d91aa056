"""Configuration management for anime-api."""

from __future__ import annotations

import logging
import os
import pathlib
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from anime_api.core.exceptions import ConfigurationError
from anime_api.core.models.config_models import AppConfig

# Type definitions for configuration
ConfigValue = dict[str, Any] | list[Any] | str | int | float | bool | None

# Set up logger early so it's available before the Rich handlers are installed
logger = logging.getLogger("config")
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
logger.setLevel(logging.INFO)

MAX_CONFIG_SIZE_BYTES = 1024 * 1024

# Environment variable -> dotted config path
ENV_OVERRIDES: dict[str, str] = {
    "PORT": "app.port",
    "VERSION": "app.version",
    "ENV": "app.env",
    "DBHOST": "database.host",
    "DBNAME": "database.name",
    "DBUSERNAME": "database.user",
    "DBPASSWORD": "database.password",
    "DBPORT": "database.port",
    "DBSSL": "database.ssl",
    "DATABASE_URL": "database.url",
    "REDIS_HOST": "redis.host",
    "REDIS_PORT": "redis.port",
    "REDIS_PASSWORD": "redis.password",
    "REDIS_DB": "redis.db",
    "CACHE_ENABLED": "redis.enabled",
    "CACHE_BACKEND": "redis.backend",
    "CACHE_ANIME_TTL_MINUTES": "redis.anime_data_ttl_minutes",
    "CACHE_EPISODE_TTL_MINUTES": "redis.episode_ttl_minutes",
    "CACHE_SEASON_TTL_MINUTES": "redis.season_ttl_minutes",
    "CACHE_LOCK_TTL_SECONDS": "redis.lock_ttl_seconds",
}


def resolve_env_vars(config: ConfigValue) -> ConfigValue:
    """Recursively resolve environment variables in config values.

    Args:
        config: Configuration value (dict, list, or primitive).

    Returns:
        ConfigValue: Config with environment variables resolved.

    """
    if isinstance(config, dict):
        return {str(k): resolve_env_vars(v) for k, v in config.items()}
    if isinstance(config, list):
        return [resolve_env_vars(item) for item in config]
    if isinstance(config, str):
        # Pure ${VAR} syntax - empty string if var not set
        if config.startswith("${") and config.endswith("}"):
            return os.getenv(config[2:-1], "")
        if "$" in config:
            return os.path.expandvars(config)
    return config


def apply_env_overrides(config_data: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Overlay known environment variables onto the parsed config.

    Values stay strings; pydantic coerces them into the target field types.

    Args:
        config_data: Parsed configuration mapping (modified copy is returned)
        environ: Environment mapping, ``os.environ`` by default

    Returns:
        Configuration mapping with overrides applied.

    """
    env = os.environ if environ is None else environ
    result: dict[str, Any] = {key: dict(value) if isinstance(value, dict) else value for key, value in config_data.items()}

    for var_name, dotted_path in ENV_OVERRIDES.items():
        value = env.get(var_name)
        if value is None or value == "":
            continue
        section_name, field_name = dotted_path.split(".", 1)
        section = result.setdefault(section_name, {})
        if not isinstance(section, dict):
            msg = f"Config section '{section_name}' must be a mapping to apply {var_name}"
            raise ConfigurationError(msg)
        section[field_name] = value
        logger.debug("[CONFIG] %s overridden from environment (%s)", dotted_path, var_name)

    return result


def _validate_config_path(path: str) -> pathlib.Path:
    """Resolve and validate the configuration file path.

    Args:
        path: The user-provided path to the configuration file.

    Returns:
        A resolved and validated pathlib.Path object.

    Raises:
        FileNotFoundError: If the path does not exist or is not a file.
        ValueError: If the path has a wrong extension.
        PermissionError: If the file is not readable.

    """
    try:
        resolved_path = pathlib.Path(path).resolve(strict=True)
    except FileNotFoundError as e:
        msg = f"Config file not found at the specified path: {path}"
        raise FileNotFoundError(msg) from e

    if not resolved_path.is_file():
        msg = f"Config path does not point to a file: {resolved_path}"
        raise FileNotFoundError(msg)

    if not os.access(resolved_path, os.R_OK):
        msg = f"No read permission for config file: {resolved_path}"
        raise PermissionError(msg)

    if resolved_path.suffix.lower() not in (".yaml", ".yml"):
        msg = "Configuration file must have a .yaml or .yml extension"
        raise ValueError(msg)

    return resolved_path


def _read_and_parse_config(path: pathlib.Path) -> ConfigValue:
    """Read and parse the YAML config file with size validation.

    Raises:
        ValueError: If config file exceeds maximum size (1MB).
        yaml.YAMLError: If YAML parsing fails.
        OSError: If file cannot be read.

    """
    if path.stat().st_size > MAX_CONFIG_SIZE_BYTES:
        msg = f"Config file {path} is too large (max {MAX_CONFIG_SIZE_BYTES} bytes)"
        raise ValueError(msg)

    logger.info("Loading config from: %s", path)
    content = path.read_text(encoding="utf-8")
    parsed_yaml: ConfigValue = yaml.safe_load(content)
    return parsed_yaml


def _validate_config_data_type(config_data: ConfigValue) -> dict[str, Any]:
    """Validate that config data is a dictionary (an empty file counts as ``{}``).

    Raises:
        TypeError: If configuration data is not a dictionary

    """
    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        msg = "Configuration data is not a dictionary after parsing."
        raise TypeError(msg)
    return config_data


def format_pydantic_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors into a readable string.

    Args:
        error: Pydantic ValidationError instance.

    Returns:
        str: Formatted error message string.

    """
    error_messages: list[str] = []

    for err in error.errors():
        loc_path = ".".join(str(loc) for loc in err["loc"])
        msg = err["msg"]
        error_type = err["type"]

        if error_type == "missing":
            error_messages.append(f"{loc_path}: Missing required field")
        elif error_type in ("type_error", "value_error", "assertion_error"):
            error_messages.append(f"{loc_path}: {msg}")
        else:
            error_messages.append(f"{loc_path}: {msg} (type: {error_type})")

    return "\n".join(error_messages)


def build_config(config_data: dict[str, Any] | None = None, environ: dict[str, str] | None = None) -> AppConfig:
    """Validate a raw configuration mapping into ``AppConfig``.

    Args:
        config_data: Parsed configuration (``None`` means all defaults)
        environ: Environment used for overrides, ``os.environ`` by default

    Returns:
        Validated AppConfig.

    Raises:
        ConfigurationError: If validation fails.

    """
    data = apply_env_overrides(config_data or {}, environ)
    try:
        return AppConfig(**data)
    except ValidationError as e:
        error_details = format_pydantic_errors(e)
        msg = f"Configuration validation failed:\n{error_details}"
        raise ConfigurationError(msg) from e


def load_config(config_path: str | None = None) -> AppConfig:
    """Load the configuration, resolve environment variables, and validate it.

    Without a path only defaults and environment overrides are used.

    Args:
        config_path: Optional path to the configuration YAML file.

    Returns:
        Validated AppConfig Pydantic model.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated.

    """
    env_loaded = load_dotenv()
    logger.info(".env file %s", "found and loaded" if env_loaded else "not found, using system environment variables")

    if config_path is None:
        config = build_config()
        logger.info("Configuration built from defaults and environment.")
        return config

    try:
        validated_path = _validate_config_path(config_path)
        config_data = _read_and_parse_config(validated_path)
        config_data = resolve_env_vars(config_data)
        config = build_config(_validate_config_data_type(config_data))
    except ConfigurationError as e:
        e.config_path = config_path
        logger.critical("Configuration loading failed: %s", e)
        raise
    except (FileNotFoundError, PermissionError, ValueError, TypeError, yaml.YAMLError) as e:
        logger.critical("Configuration loading failed: %s", e)
        raise ConfigurationError(str(e), config_path) from e

    logger.info("Configuration successfully loaded and validated.")
    return config
