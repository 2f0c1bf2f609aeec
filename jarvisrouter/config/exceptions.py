"""Configuration-related exceptions."""

from typing import Optional


class ConfigError(Exception):
    """Configuration missing, unreadable or malformed."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.config_path = config_path


class NotFoundError(ConfigError):
    """A provider id is not present in the configuration."""

    def __init__(self, provider_id: str, config_path: Optional[str] = None):
        super().__init__(f"Provider {provider_id} not found in priority configuration", config_path)
        self.provider_id = provider_id


class ValidationError(Exception):
    """Invalid chat request."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
