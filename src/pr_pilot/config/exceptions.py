"""Configuration-related exceptions."""


class ConfigurationError(Exception):
    """Base exception for configuration errors."""


class MissingConfigurationError(ConfigurationError):
    """Required configuration (token, repository) is missing."""


class InvalidConfigurationError(ConfigurationError):
    """Configuration value is invalid or a config file cannot be used."""
