"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when a configuration value is present but cannot be used."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""
