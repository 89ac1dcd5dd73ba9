"""
Configuration management for SQLBot.

Configuration is layered, lowest precedence first:

1. Built-in defaults (the pydantic models below)
2. ``.sqlbot/config.yml`` (working directory, then ``~/.sqlbot/``)
3. ``SQLBOT_*`` environment variables (``.env`` is loaded on import)
4. Explicit overrides, usually from CLI flags

It fails fast on invalid configuration to prevent runtime errors
and provide clear error messages.
"""
import os
import copy
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

# interpolate=False prevents $VAR expansion in values (important for passwords with $ characters)
load_dotenv(interpolate=False)

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# =============================================================================
# SAFETY CONSTRAINTS (HARDCODED - DO NOT MAKE CONFIGURABLE)
# =============================================================================

# Never allowed in read-only mode
FORBIDDEN_KEYWORDS = [
    "INSERT", "UPDATE", "DELETE", "DROP", "ALTER", "CREATE", "TRUNCATE",
    "REPLACE", "MERGE", "UPSERT", "GRANT", "REVOKE", "ATTACH", "DETACH",
    "VACUUM", "REINDEX", "PRAGMA", "COPY", "CALL", "EXEC", "EXECUTE",
]

# Statements that may lead a read-only query
READ_ONLY_STATEMENTS = ["SELECT", "WITH", "VALUES", "EXPLAIN"]


# =============================================================================
# CONFIGURATION MODELS
# =============================================================================

DEFAULT_MODEL = "gemini/gemini-2.0-flash"
DEFAULT_PROFILE = "Sakila"
CONFIG_DIR_NAME = ".sqlbot"
CONFIG_FILE_NAMES = ["config.yml", "config.yaml"]


class LLMSettings(BaseModel):
    """LLM provider settings (any model string LiteLLM understands)."""
    model: str = DEFAULT_MODEL
    fallback_model: Optional[str] = None
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, gt=0)
    api_key_env: Optional[str] = None


class DatabaseSettings(BaseModel):
    """Query execution settings."""
    read_only: bool = True
    preview_mode: bool = False
    default_limit: int = Field(default=100, ge=1)
    max_result_rows: int = Field(default=1000, ge=1)
    query_timeout_seconds: int = Field(default=30, ge=1)


class SQLBotConfig(BaseModel):
    """Complete SQLBot configuration."""
    profile: str = DEFAULT_PROFILE
    target: Optional[str] = None
    profiles_dir: Optional[str] = None
    max_retries: int = Field(default=1, ge=0, le=5)
    history_turns: int = Field(default=5, ge=0)
    knowledge_max_chars: int = Field(default=20000, ge=0)
    log_level: str = "WARNING"
    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)


# =============================================================================
# ENVIRONMENT OVERRIDES
# =============================================================================

def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# env var -> (dotted config path, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "SQLBOT_PROFILE": ("profile", str),
    "SQLBOT_TARGET": ("target", str),
    "DBT_PROFILES_DIR": ("profiles_dir", str),
    "SQLBOT_LLM_MODEL": ("llm.model", str),
    "SQLBOT_FALLBACK_MODEL": ("llm.fallback_model", str),
    "SQLBOT_TEMPERATURE": ("llm.temperature", float),
    "SQLBOT_MAX_TOKENS": ("llm.max_tokens", int),
    "SQLBOT_READ_ONLY": ("database.read_only", _parse_bool),
    "SQLBOT_PREVIEW_MODE": ("database.preview_mode", _parse_bool),
    "SQLBOT_DEFAULT_LIMIT": ("database.default_limit", int),
    "SQLBOT_MAX_RESULT_ROWS": ("database.max_result_rows", int),
    "SQLBOT_QUERY_TIMEOUT": ("database.query_timeout_seconds", int),
    "SQLBOT_MAX_RETRIES": ("max_retries", int),
    "LOG_LEVEL": ("log_level", str),
}


def _set_dotted(data: Dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested dicts merge, other values replace."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect configuration values from ``SQLBOT_*`` environment variables."""
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}
    for key, (path, parser) in ENV_OVERRIDES.items():
        raw = environ.get(key)
        if raw is None or raw.strip() == "":
            continue
        try:
            _set_dotted(data, path, parser(raw))
        except ValueError as e:
            raise ConfigurationError(f"❌ Invalid value for {key}: {e}")
    return data


def _drop_unknown_keys(data: Dict[str, Any], model: type, prefix: str = "") -> Dict[str, Any]:
    """Remove keys the config models don't know, warning about each one."""
    cleaned = {}
    for key, value in data.items():
        field = model.model_fields.get(key)
        if field is None:
            logger.warning("Ignoring unknown config key: %s%s", prefix, key)
            continue
        annotation = field.annotation
        if isinstance(value, dict) and isinstance(annotation, type) and issubclass(annotation, BaseModel):
            value = _drop_unknown_keys(value, annotation, prefix=f"{prefix}{key}.")
        cleaned[key] = value
    return cleaned


# =============================================================================
# CONFIG FILE DISCOVERY
# =============================================================================

def config_search_paths(base_dir: Optional[Path] = None) -> List[Path]:
    """Candidate config file locations, highest priority first."""
    base_dir = Path(base_dir) if base_dir else Path.cwd()
    dirs = [base_dir / CONFIG_DIR_NAME, Path.home() / CONFIG_DIR_NAME]
    return [d / name for d in dirs for name in CONFIG_FILE_NAMES]


def find_config_file(base_dir: Optional[Path] = None) -> Optional[Path]:
    """Find the first existing configuration file."""
    for candidate in config_search_paths(base_dir):
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file into a dict."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"❌ Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"❌ Cannot read config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"❌ Config file {path} must contain a mapping at the top level")
    return data


def load_config(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    base_dir: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> SQLBotConfig:
    """
    Build the effective configuration.

    Args:
        path: Explicit config file (must exist). If None, the search paths are used.
        overrides: Nested dict of values that win over everything else
        base_dir: Directory to search for ``.sqlbot/`` (defaults to cwd)
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated SQLBotConfig

    Raises:
        ConfigurationError: If the file is unreadable or values are invalid
    """
    data: Dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"❌ Config file not found: {path}")
        config_file = path
    else:
        config_file = find_config_file(base_dir)

    if config_file is not None:
        logger.debug("Loading config from %s", config_file)
        data = _deep_merge(data, read_config_file(config_file))

    data = _deep_merge(data, env_overrides(environ))
    if overrides:
        data = _deep_merge(data, {k: v for k, v in overrides.items() if v is not None})

    data = _drop_unknown_keys(data, SQLBotConfig)
    try:
        return SQLBotConfig.model_validate(data)
    except ValidationError as e:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"❌ Invalid configuration:\n{problems}")


def save_config(config: SQLBotConfig, path: Path) -> Path:
    """Write configuration as YAML, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(exclude_none=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"❌ Cannot write config file {path}: {e}")
    return path


# =============================================================================
# API KEY VALIDATION
# =============================================================================

PLACEHOLDER_VALUES = [
    "your_openai_api_key_here",
    "your_anthropic_api_key_here",
    "your_groq_api_key_here",
    "your_google_api_key_here",
    "sk-XXXXXXXXXXXXXXXXXXXXXXXX",
    "",
    None,
]

# model prefix -> env vars LiteLLM reads for that provider (any one is enough)
PROVIDER_KEY_ENV = {
    "gemini": ["GEMINI_API_KEY", "GOOGLE_API_KEY"],
    "groq": ["GROQ_API_KEY"],
    "anthropic": ["ANTHROPIC_API_KEY"],
    "openai": ["OPENAI_API_KEY"],
    "ollama": [],
}


def provider_for_model(model: str) -> str:
    """Infer the provider from a LiteLLM model string."""
    if "/" in model:
        return model.split("/", 1)[0].lower()
    lowered = model.lower()
    if lowered.startswith("claude"):
        return "anthropic"
    if lowered.startswith("gemini"):
        return "gemini"
    return "openai"


def api_key_env_vars(llm: LLMSettings) -> List[str]:
    """Environment variables that may hold the API key for the configured model."""
    if llm.api_key_env:
        return [llm.api_key_env]
    return PROVIDER_KEY_ENV.get(provider_for_model(llm.model), [])


def validate_configuration(
    config: SQLBotConfig,
    require_api_key: bool = True,
    environ: Optional[Dict[str, str]] = None,
) -> SQLBotConfig:
    """
    Validate runtime requirements that the models can't express.

    Raises:
        ConfigurationError: If any requirement fails (all problems are listed)
    """
    environ = os.environ if environ is None else environ
    errors = []

    if require_api_key:
        env_vars = api_key_env_vars(config.llm)
        if env_vars and all(environ.get(var) in PLACEHOLDER_VALUES for var in env_vars):
            errors.append(
                f"No API key configured for model '{config.llm.model}'.\n"
                f"     Set {' or '.join(env_vars)} in your environment or .env file."
            )

    if config.database.default_limit > config.database.max_result_rows:
        errors.append(
            f"database.default_limit ({config.database.default_limit}) exceeds "
            f"database.max_result_rows ({config.database.max_result_rows})"
        )

    if errors:
        error_msg = "\n\nConfiguration Errors:\n" + "\n".join(f"  • {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return config
