#!/usr/bin/env python3
"""
Configuration module for the Snowflake key generator.
"""

import os
import sys
from typing import Dict, Any, Optional
import yaml
import pytz
from datetime import datetime
from pydantic import field_validator
from pydantic_settings import BaseSettings
from loguru import logger

from keygen.core.const import DEFAULT_EPOCH


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Generator configuration
    node_id: Optional[int] = None
    epoch: int = DEFAULT_EPOCH
    spin_sleep: float = 0.0001

    # Key supply configuration
    key_buffer_capacity: int = 10000
    key_pool_size: int = 20

    # API configuration
    max_batch_size: int = 1000
    port: Optional[int] = None

    # Logging configuration
    log_level: str = "INFO"

    # Configuration file path
    config_path: str = "config/settings.yaml"

    # Timezone used when rendering id timestamps
    timezone: str = "UTC"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()


# Settings field -> (section, key) in the merged configuration
FIELD_SECTIONS = {
    "node_id": ("generator", "node_id"),
    "epoch": ("generator", "epoch"),
    "spin_sleep": ("generator", "spin_sleep"),
    "key_buffer_capacity": ("key_supply", "capacity"),
    "key_pool_size": ("key_supply", "pool_size"),
    "max_batch_size": ("app", "max_batch_size"),
    "port": ("app", "port"),
    "timezone": ("app", "timezone"),
    "log_level": ("logging", "level"),
}

SECTIONS = ["generator", "key_supply", "app", "logging"]


def load_yaml_config(file_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        file_path: Path to YAML configuration file

    Returns:
        Configuration dictionary
    """
    if not os.path.exists(file_path):
        logger.warning(f"Configuration file not found: {file_path}")
        return {}

    try:
        with open(file_path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.error(f"Configuration file must contain a mapping: {file_path}")
            return {}
        return data
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading configuration file: {str(e)}")
        return {}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration.

    Node id range is deliberately not checked here: the generator rejects an
    out-of-range node id with a ConfigurationError when it is constructed.

    Args:
        config: Configuration dictionary

    Returns:
        True if configuration is valid, False otherwise
    """
    for section in SECTIONS:
        if not isinstance(config.get(section) or {}, dict):
            logger.error(f"Invalid {section} section: must be a mapping")
            return False

    generator_config = config.get("generator") or {}
    node_id = generator_config.get("node_id")
    if node_id is not None and (not isinstance(node_id, int) or isinstance(node_id, bool)):
        logger.error("Invalid node_id: must be an integer")
        return False

    epoch = generator_config.get("epoch", DEFAULT_EPOCH)
    if not isinstance(epoch, int) or isinstance(epoch, bool) or epoch < 0:
        logger.error("Invalid epoch: must be a non-negative integer in milliseconds")
        return False

    spin_sleep = generator_config.get("spin_sleep", 0)
    if not _is_number(spin_sleep) or spin_sleep < 0:
        logger.error("Invalid spin_sleep: must be a non-negative number of seconds")
        return False

    # Check key supply configuration
    key_supply_config = config.get("key_supply") or {}
    for key in ["capacity", "pool_size"]:
        value = key_supply_config.get(key, 1)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            logger.error(f"Invalid key_supply.{key}: must be a positive integer")
            return False

    app_config = config.get("app") or {}
    max_batch_size = app_config.get("max_batch_size", 1)
    if not isinstance(max_batch_size, int) or isinstance(max_batch_size, bool) or max_batch_size < 1:
        logger.error("Invalid max_batch_size: must be a positive integer")
        return False

    return True


def merge_configs(env_config: Settings, file_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge environment and file configurations.

    Values set in the environment override the file; defaults only fill
    keys the file leaves out.

    Args:
        env_config: Environment configuration
        file_config: File configuration

    Returns:
        Merged configuration
    """
    # Start with file configuration; an empty YAML section loads as None
    merged_config = {section: dict(values or {}) if isinstance(values, (dict, type(None))) else values
                     for section, values in file_config.items()}

    explicit = env_config.model_dump(exclude_unset=True)
    for key, value in env_config.model_dump().items():
        if key not in FIELD_SECTIONS:
            continue
        section, option = FIELD_SECTIONS[key]
        target = merged_config.setdefault(section, {})
        if not isinstance(target, dict):
            # Rejected by validate_config
            continue
        if key in explicit:
            target[option] = value
        else:
            target.setdefault(option, value)

    return merged_config


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Set up logging configuration.

    Args:
        config: Configuration dictionary
    """
    log_level = config.get("logging", {}).get("level", "INFO")

    # Remove default logger
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <yellow>trace_id={extra[trace_id]}</yellow> | <level>{message}</level>",
        filter=lambda record: "trace_id" in record["extra"],
        level=log_level
    )
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        filter=lambda record: "trace_id" not in record["extra"],
        level=log_level
    )

    # Add file logger if configured
    log_file = config.get("logging", {}).get("file", {}) or {}
    if log_file.get("path"):
        logger.add(
            log_file.get("path"),
            level=log_level,
            rotation=log_file.get("max_size", "100MB"),
            retention=log_file.get("backup_count", 5),
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
        )


def load_config() -> Dict[str, Any]:
    """
    Load application configuration.

    Returns:
        Configuration dictionary
    """
    # Load environment variables
    try:
        env_config = Settings()
    except Exception as e:
        logger.error(f"Error loading environment variables: {str(e)}")
        sys.exit(1)

    # Load configuration file
    file_config = load_yaml_config(env_config.config_path)

    # Merge configurations
    config = merge_configs(env_config, file_config)
    config["config_path"] = env_config.config_path

    # Validate configuration
    if not validate_config(config):
        logger.error("Invalid configuration")
        sys.exit(1)

    # Set up logging
    setup_logging(config)

    timezone_name = config.get("app", {}).get("timezone", "UTC")
    try:
        pytz.timezone(timezone_name)
        logger.info(f"Default timezone set to {timezone_name}")
    except pytz.exceptions.UnknownTimeZoneError:
        logger.error(f"Unknown timezone: {timezone_name}, using UTC instead")
        timezone_name = "UTC"

    # Store the timezone in the config
    config.setdefault("app", {})["timezone"] = timezone_name

    logger.info(f"Configuration loaded from {env_config.config_path}")

    return config


# Global configuration instance
config = load_config()


def get_settings() -> Settings:
    """Flat settings view of the merged configuration."""
    values = {"config_path": config.get("config_path", "config/settings.yaml")}
    for key, (section, option) in FIELD_SECTIONS.items():
        section_config = config.get(section, {})
        if option in section_config:
            values[key] = section_config[option]
    return Settings(**values)


# Get the configured timezone
def get_timezone():
    """Get the configured timezone."""
    timezone_name = config.get("app", {}).get("timezone", "UTC")
    return pytz.timezone(timezone_name)


# Function to localize a datetime object to the configured timezone
def localize_datetime(dt: datetime) -> datetime:
    """Localize a naive datetime, or convert an aware one, to the configured timezone."""
    tz = get_timezone()
    if dt.tzinfo is None:
        return tz.localize(dt)
    return dt.astimezone(tz)
