"""Configuration management and validation.

Handles YAML configuration loading, built-in provider descriptors and
credential validation. Submodules that depend on the routing models
(``loader``, ``providers``, ``validate_env``) are imported by full path.
"""

from jarvisrouter.config.exceptions import (
    ConfigError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "ConfigError",
    "NotFoundError",
    "ValidationError",
]
