"""
Configuration management for the workspace collaboration server.

This module provides a clean, simple configuration system driven by
environment variables, optionally loaded from a .env file.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ..infrastructure.exceptions import ConfigurationError
from ..infrastructure.logging_manager import LogLevel

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class CollabConfig:
    """Runtime configuration for the collaboration server."""

    # WebSocket server
    host: str = "localhost"
    port: int = 8765
    path: str = "/ws"

    # Liveness and backpressure (seconds)
    ping_interval: int = 30
    ping_timeout: int = 10
    send_timeout: int = 5

    max_connections: int = 1000
    max_message_size: int = 2**20

    # Document store
    db_path: str = "data/workspace.db"

    # Ops HTTP API
    api_enabled: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    log_level: str = "INFO"

    def __post_init__(self):
        """Post-initialization validation."""
        if not self.path.startswith("/"):
            raise ConfigurationError(f"WebSocket path must start with '/': {self.path}")
        for name in ("port", "api_port", "max_connections", "max_message_size"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")
        if self.log_level.upper() not in {level.value for level in LogLevel}:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")


class CollabConfigManager:
    """Simple configuration manager."""

    def __init__(self, env_file_path: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            env_file_path: Path to environment file
        """
        self.env_file_path = env_file_path
        self._load_environment()

    def _load_environment(self):
        """Load environment variables from file."""
        if os.path.exists(self.env_file_path):
            load_dotenv(dotenv_path=self.env_file_path)
            logger.info(f"Loaded environment from {self.env_file_path}")
        else:
            logger.debug(f"Environment file {self.env_file_path} not found")

    def _get_optional_env(self, key: str, default: str = None) -> str:
        """Get optional environment variable."""
        return os.getenv(key, default)

    def _get_int_env(self, key: str, default: int) -> int:
        """
        Get an integer environment variable.

        Raises:
            ConfigurationError: If the value is not an integer
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {value!r}")

    def _get_bool_env(self, key: str, default: bool) -> bool:
        """
        Get a boolean environment variable.

        Raises:
            ConfigurationError: If the value is not a recognised boolean
        """
        value = os.getenv(key)
        if value is None or value.strip() == "":
            return default
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"{key} must be a boolean, got {value!r}")

    def get_config(self) -> CollabConfig:
        """
        Get the server configuration.

        Returns:
            CollabConfig: Server configuration

        Raises:
            ConfigurationError: If a value is present but invalid
        """
        try:
            config = CollabConfig(
                host=self._get_optional_env("COLLAB_HOST", "localhost"),
                port=self._get_int_env("COLLAB_PORT", 8765),
                path=self._get_optional_env("COLLAB_PATH", "/ws"),
                ping_interval=self._get_int_env("COLLAB_PING_INTERVAL", 30),
                ping_timeout=self._get_int_env("COLLAB_PING_TIMEOUT", 10),
                send_timeout=self._get_int_env("COLLAB_SEND_TIMEOUT", 5),
                max_connections=self._get_int_env("COLLAB_MAX_CONNECTIONS", 1000),
                max_message_size=self._get_int_env("COLLAB_MAX_MESSAGE_SIZE", 2**20),
                db_path=self._get_optional_env("COLLAB_DB_PATH", "data/workspace.db"),
                api_enabled=self._get_bool_env("COLLAB_API_ENABLED", True),
                api_host=self._get_optional_env("COLLAB_API_HOST", "0.0.0.0"),
                api_port=self._get_int_env("COLLAB_API_PORT", 8000),
                log_level=self._get_optional_env("LOG_LEVEL", "INFO"),
            )

            logger.info("Configuration loaded successfully")
            return config

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}", exc_info=True)
            raise


# Global configuration manager instance
config_manager = CollabConfigManager()
