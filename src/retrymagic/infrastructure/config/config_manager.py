"""Configuration manager for loading and validating .retrymagic.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from retrymagic.domain.config import AppConfig, RetrySettings
from retrymagic.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".retrymagic.yml"

# Environment variable -> key in the "retry" section
ENV_OVERRIDES = {
    "RETRYMAGIC_MAX_ATTEMPTS": "maximum_number_of_attempts",
    "RETRYMAGIC_MS_PER_SLOT": "milliseconds_per_slot",
    "RETRYMAGIC_TRUNCATE": "truncate_number_of_slots",
    "RETRYMAGIC_MAX_SLOTS": "maximum_number_of_slots_when_truncated",
}


class ConfigManager:
    """Manages configuration from .retrymagic.yml and environment variables

    Configuration priority:
    1. Default values (DEFAULT_CONFIG)
    2. .retrymagic.yml file (searched from current directory upwards)
    3. Environment variables (RETRYMAGIC_*)
    4. CLI arguments (handled by CLI layer)
    """

    DEFAULT_CONFIG = {
        "retry": {
            "maximum_number_of_attempts": 5,
            "milliseconds_per_slot": 32,
            "truncate_number_of_slots": True,
            "maximum_number_of_slots_when_truncated": 16,
            "jitter_settings": {
                "percentage": 25,
            },
        },
        "log_level": "INFO",
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .retrymagic.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            raise ConfigurationError.from_validation_error(
                e, title="Configuration validation failed"
            ) from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .retrymagic.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Raises:
            ConfigurationError: If the retry section is invalid
            ValidationError: If any other section is invalid
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
                if not isinstance(file_config, dict):
                    raise ValueError(f"expected a mapping, got {type(file_config).__name__}")
                config_dict = self._merge_config(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_path}")
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")

        config_dict = self._apply_env_overrides(config_dict)

        retry = config_dict.pop("retry", None) or {}
        if not isinstance(retry, dict):
            raise ConfigurationError.from_errors(
                [("retry", "Input should be a mapping")], title="Configuration validation failed"
            )
        # RetrySettings raises ConfigurationError itself; prefix its fields with the section
        try:
            retry_settings = RetrySettings(**retry)
        except ConfigurationError as e:
            raise ConfigurationError.from_errors(
                [(f"retry.{field}", msg) for field, msg in e.errors],
                title="Configuration validation failed",
            ) from e

        return AppConfig(retry=retry_settings, **config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply RETRYMAGIC_* environment variable overrides"""
        retry = config.setdefault("retry", {})
        if not isinstance(retry, dict):
            return config

        for env_name, key in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                retry[key] = value

        jitter = os.getenv("RETRYMAGIC_JITTER_PERCENTAGE")
        if jitter:
            jitter_settings = retry.get("jitter_settings")
            if not isinstance(jitter_settings, dict):
                jitter_settings = {}
            retry["jitter_settings"] = {**jitter_settings, "percentage": jitter}

        if os.getenv("RETRYMAGIC_LOG_LEVEL"):
            config["log_level"] = os.getenv("RETRYMAGIC_LOG_LEVEL").upper()

        return config

    def get_retry_settings(self) -> RetrySettings:
        """Get retry settings

        Returns:
            Validated RetrySettings
        """
        return self.config.retry

    def get_log_level(self) -> str:
        return self.config.log_level

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "retry.milliseconds_per_slot" or "retry")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
