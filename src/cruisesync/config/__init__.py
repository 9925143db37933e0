"""Application configuration helpers."""

from __future__ import annotations

from .env import env_bool, env_float, env_int, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .remote import RemoteSessionConfig, get_remote_session_config
from .session import SessionConfig, get_session_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "RemoteSessionConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "SessionConfig",
    "StorageConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "get_database_config",
    "get_remote_session_config",
    "get_session_config",
    "get_storage_config",
    "require_env_vars",
]
