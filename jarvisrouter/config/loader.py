"""Configuration loader for JARVIS Router."""

import os
import logging
import logging.handlers
from pathlib import Path
from typing import Dict, Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from jarvisrouter.config.exceptions import ConfigError
from jarvisrouter.config.providers import BUILTIN_PROVIDERS
from jarvisrouter.llm.base import DEFAULT_SYSTEM_PROMPT
from jarvisrouter.llm.credentials import CredentialSource
from jarvisrouter.llm.events import EventSink
from jarvisrouter.llm.fallback_chain import FallbackChainConfig, FallbackOrchestrator, create_orchestrator
from jarvisrouter.llm.models import ProviderDescriptor
from jarvisrouter.llm.priority_store import DEFAULT_PRIORITY_FILE, PriorityStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size_mb: int = 10
    backup_count: int = 5
    enable_console_logging: bool = True


class RouterConfig(BaseModel):
    """Main JARVIS Router configuration."""

    priority_file: str = DEFAULT_PRIORITY_FILE
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    providers: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Descriptor overrides (or new descriptors) keyed by provider id"
    )
    fallback: Dict[str, Any] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def fallback_config(self) -> FallbackChainConfig:
        """Fallback policy; file values win over FALLBACK_* environment variables."""
        try:
            return FallbackChainConfig(**self.fallback)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid fallback configuration: {e}") from e


class ConfigurationLoader:
    """Loads configuration and wires the routing components from it."""

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        priority_file: Optional[Union[str, Path]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_path: Path to configuration file
            priority_file: Priority file path, overriding the configured one
        """
        self.config_path = Path(config_path) if config_path else None
        self._priority_file = str(priority_file) if priority_file else None
        self._config: Optional[RouterConfig] = None

    def load_config(self) -> RouterConfig:
        """Load configuration from file and environment."""
        if self._config is None:
            self._config = load_config(self.config_path)
            if self._priority_file:
                self._config.priority_file = self._priority_file
        return self._config

    def get_descriptors(self) -> Dict[str, ProviderDescriptor]:
        return get_descriptors(self.load_config())

    def priority_store(self) -> PriorityStore:
        return PriorityStore(self.load_config().priority_file)

    def create_orchestrator(
        self,
        credentials: Optional[CredentialSource] = None,
        event_sink: Optional[EventSink] = None,
    ) -> FallbackOrchestrator:
        """Build an orchestrator from the loaded configuration.

        Raises:
            ConfigError: If the configuration or the priority file is invalid
        """
        config = self.load_config()
        return create_orchestrator(
            self.get_descriptors(),
            config.priority_file,
            config=config.fallback_config(),
            credentials=credentials,
            event_sink=event_sink,
            system_prompt=config.system_prompt,
        )

    def __repr__(self) -> str:
        return f"ConfigurationLoader(config_path={self.config_path})"


def load_config(config_path: Optional[Union[str, Path]] = None) -> RouterConfig:
    """Load router configuration from file and environment variables.

    Args:
        config_path: Path to configuration file. Defaults to config.yaml in current
            directory, which may be absent.

    Returns:
        RouterConfig instance with loaded configuration

    Raises:
        ConfigError: If an explicitly given file is missing, or the file is invalid
    """
    explicit = config_path is not None
    config_path = Path(config_path) if explicit else Path(DEFAULT_CONFIG_FILE)

    # Load base configuration from file
    config_data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config file: {e}", str(config_path)) from e
        if not isinstance(config_data, dict):
            raise ConfigError("Configuration root must be a mapping", str(config_path))
        logger.info(f"Loaded configuration from {config_path}")
    elif explicit:
        raise ConfigError(f"Config file {config_path} not found", str(config_path))
    else:
        logger.debug(f"Config file {config_path} not found, using defaults")

    # Override with environment variables
    config_data = _apply_environment_overrides(config_data)

    try:
        return RouterConfig.model_validate(config_data)
    except PydanticValidationError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise ConfigError(f"Invalid configuration: {e}", str(config_path)) from e


def _apply_environment_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to configuration.

    Args:
        config_data: Base configuration data from file

    Returns:
        Configuration data with environment overrides applied
    """
    if os.getenv('LOG_LEVEL'):
        config_data.setdefault('logging', {})['level'] = os.getenv('LOG_LEVEL')

    if os.getenv('PRIORITY_FILE'):
        config_data['priority_file'] = os.getenv('PRIORITY_FILE')

    max_attempts = os.getenv('JARVIS_MAX_ATTEMPTS')
    if max_attempts:
        try:
            config_data.setdefault('fallback', {})['max_attempts_per_provider'] = int(max_attempts)
        except ValueError as e:
            raise ConfigError(f"JARVIS_MAX_ATTEMPTS must be an integer, got {max_attempts!r}") from e

    return config_data


def get_descriptors(config: RouterConfig) -> Dict[str, ProviderDescriptor]:
    """Built-in descriptors merged with the ``providers`` section of the config.

    Raises:
        ConfigError: If an override produces an invalid descriptor
    """
    descriptors = dict(BUILTIN_PROVIDERS)
    for provider_id, overrides in config.providers.items():
        base = descriptors.get(provider_id)
        data = base.model_dump() if base else {}
        data.update(overrides or {})
        data['id'] = provider_id
        try:
            descriptors[provider_id] = ProviderDescriptor.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid provider configuration for '{provider_id}': {e}") from e
    return descriptors


def setup_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Set up logging based on configuration.

    Args:
        config: Logging section of the router configuration
        verbose: Force DEBUG level regardless of the configured level
    """
    level = logging.DEBUG if verbose else getattr(logging, config.level.upper(), logging.INFO)
    formatter = logging.Formatter(config.format)
    handlers = []

    # Add file handler with rotation
    if config.file_path:
        log_file = Path(config.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    # Add console handler if enabled
    if config.enable_console_logging:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = handlers

    logger.debug("Logging configured successfully")
