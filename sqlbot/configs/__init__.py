"""Config module initialization."""
from .settings import (
    # Models
    SQLBotConfig,
    LLMSettings,
    DatabaseSettings,
    # Loading
    load_config,
    save_config,
    find_config_file,
    env_overrides,
    # Constants
    DEFAULT_MODEL,
    DEFAULT_PROFILE,
    CONFIG_DIR_NAME,
    FORBIDDEN_KEYWORDS,
    READ_ONLY_STATEMENTS,
    # Validation
    ConfigurationError,
    validate_configuration,
    provider_for_model,
    api_key_env_vars,
)
from .logging_config import setup_logging

__all__ = [
    "SQLBotConfig",
    "LLMSettings",
    "DatabaseSettings",
    "load_config",
    "save_config",
    "find_config_file",
    "env_overrides",
    "DEFAULT_MODEL",
    "DEFAULT_PROFILE",
    "CONFIG_DIR_NAME",
    "FORBIDDEN_KEYWORDS",
    "READ_ONLY_STATEMENTS",
    "ConfigurationError",
    "validate_configuration",
    "provider_for_model",
    "api_key_env_vars",
    "setup_logging",
]
