"""
dbt-style connection profiles.

Reads ``profiles.yml`` in the format dbt uses::

    Sakila:
      target: dev
      outputs:
        dev:
          type: sqlite
          threads: 1
          database: database
          schema: main
          schemas_and_paths:
            main: profiles/Sakila/data/sakila.db
          schema_directory: profiles/Sakila/data

and turns the selected output into a ConnectionConfig. Only connection
fields are read; dbt's Jinja templating is not evaluated, except for
``{{ env_var('NAME', 'default') }}`` placeholders which are substituted
from the environment.
"""
import os
import re
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from sqlbot.adapters.database_adapter import ConnectionConfig, DatabaseType

logger = logging.getLogger(__name__)

PROFILES_FILE_NAME = "profiles.yml"

# Top-level keys in profiles.yml that are not profiles
RESERVED_KEYS = {"config"}

_ENV_VAR_PATTERN = re.compile(
    r"""\{\{\s*env_var\(\s*(['"])(?P<name>[^'"]+)\1\s*"""
    r"""(?:,\s*(['"])(?P<default>.*?)\3\s*)?\)\s*\}\}"""
)
_TEMPLATE_PATTERN = re.compile(r"\{\{.*?\}\}|\{%.*?%\}")


class ProfileError(Exception):
    """Raised when a profile can't be found or resolved."""
    pass


@dataclass
class ResolvedProfile:
    """A profile/target pair resolved to a concrete connection."""
    name: str
    target: str
    db_type: DatabaseType
    connection: ConnectionConfig
    source: Optional[Path] = None
    output: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# FILE DISCOVERY
# =============================================================================

def profiles_search_dirs(profiles_dir: Optional[str] = None, base_dir: Optional[Path] = None) -> List[Path]:
    """Directories searched for profiles.yml, highest priority first."""
    base_dir = Path(base_dir) if base_dir else Path.cwd()
    dirs = []
    if profiles_dir:
        dirs.append(Path(profiles_dir).expanduser())
    env_dir = os.getenv("DBT_PROFILES_DIR")
    if env_dir:
        dirs.append(Path(env_dir).expanduser())
    dirs.append(base_dir / ".sqlbot" / "dbt")
    dirs.append(Path.home() / ".dbt")
    return dirs


def find_profiles_file(profiles_dir: Optional[str] = None, base_dir: Optional[Path] = None) -> Optional[Path]:
    """Return the first existing profiles.yml, or None."""
    for directory in profiles_search_dirs(profiles_dir, base_dir):
        candidate = directory / PROFILES_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_profiles(path: Path) -> Dict[str, Any]:
    """Parse a profiles.yml file. Non-profile top-level keys are dropped."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ProfileError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ProfileError(f"Cannot read profiles file {path}: {e}")

    if not isinstance(data, dict):
        raise ProfileError(f"{path} must contain a mapping of profile names")
    return {k: v for k, v in data.items() if k not in RESERVED_KEYS}


# =============================================================================
# ENV_VAR SUBSTITUTION
# =============================================================================

def render_env_vars(value: Any, environ: Optional[Dict[str, str]] = None) -> Any:
    """
    Substitute ``{{ env_var('NAME') }}`` placeholders, recursively.

    Raises:
        ProfileError: If a variable is unset and has no default, or if any
            other template expression is present
    """
    environ = os.environ if environ is None else environ

    if isinstance(value, dict):
        return {k: render_env_vars(v, environ) for k, v in value.items()}
    if isinstance(value, list):
        return [render_env_vars(v, environ) for v in value]
    if not isinstance(value, str):
        return value

    def _replace(match: re.Match) -> str:
        name = match.group("name")
        if name in environ:
            return environ[name]
        if match.group("default") is not None:
            return match.group("default")
        raise ProfileError(f"Environment variable '{name}' is required by the profile but not set")

    rendered = _ENV_VAR_PATTERN.sub(_replace, value)
    leftover = _TEMPLATE_PATTERN.search(rendered)
    if leftover:
        raise ProfileError(f"Unsupported template expression in profile: {leftover.group(0)}")
    return rendered


# =============================================================================
# RESOLUTION
# =============================================================================

def _match_profile_name(profiles: Dict[str, Any], name: str) -> str:
    if name in profiles:
        return name
    for key in profiles:
        if str(key).lower() == name.lower():
            return key
    available = ", ".join(sorted(str(k) for k in profiles)) or "none"
    raise ProfileError(f"Profile '{name}' not found (available: {available})")


def _resolve_path(raw: str, base_dir: Path) -> str:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def _sqlite_connection(output: Dict[str, Any], base_dir: Path) -> ConnectionConfig:
    schema = output.get("schema", "main")
    paths = output.get("schemas_and_paths") or {}
    if not isinstance(paths, dict):
        raise ProfileError("'schemas_and_paths' must be a mapping of schema name to file path")

    raw_path = paths.get(schema)
    if raw_path is None and paths:
        raw_path = next(iter(paths.values()))
    if raw_path is None:
        raw_path = output.get("path")
    if not raw_path:
        raise ProfileError("SQLite profile needs 'schemas_and_paths' or 'path'")

    return ConnectionConfig(
        db_type=DatabaseType.SQLITE,
        file_path=_resolve_path(str(raw_path), base_dir),
        schema=schema,
    )


def _postgres_connection(output: Dict[str, Any]) -> ConnectionConfig:
    host = output.get("host")
    if not host:
        raise ProfileError("Postgres profile needs 'host'")
    try:
        port = int(output.get("port", 5432))
    except (TypeError, ValueError):
        raise ProfileError(f"Invalid port in Postgres profile: {output.get('port')!r}")

    return ConnectionConfig(
        db_type=DatabaseType.POSTGRES,
        host=str(host),
        port=port,
        database=output.get("dbname") or output.get("database"),
        user=output.get("user"),
        password=output.get("password") if output.get("password") is not None else output.get("pass"),
        schema=output.get("schema", "public"),
    )


_TYPE_ALIASES = {
    "sqlite": DatabaseType.SQLITE,
    "postgres": DatabaseType.POSTGRES,
    "postgresql": DatabaseType.POSTGRES,
}


def resolve_output(output: Dict[str, Any], base_dir: Optional[Path] = None) -> ConnectionConfig:
    """Turn one (already rendered) profile output into a ConnectionConfig."""
    base_dir = Path(base_dir) if base_dir else Path.cwd()
    db_type = _TYPE_ALIASES.get(str(output.get("type", "")).lower())
    if db_type is None:
        raise ProfileError(
            f"Unsupported profile type: {output.get('type')!r} (supported: sqlite, postgres)"
        )
    if db_type == DatabaseType.SQLITE:
        return _sqlite_connection(output, base_dir)
    return _postgres_connection(output)


def resolve_profile(
    name: str,
    target: Optional[str] = None,
    profiles_dir: Optional[str] = None,
    base_dir: Optional[Path] = None,
    path: Optional[Path] = None,
) -> ResolvedProfile:
    """
    Resolve a profile name (and optional target) to a connection.

    Args:
        name: Profile name (exact match first, then case-insensitive)
        target: Output name; defaults to the profile's ``target``
        profiles_dir: Directory holding profiles.yml (searched first)
        base_dir: Working directory for relative paths and ``.sqlbot/``
        path: Explicit profiles.yml path (skips discovery)

    Raises:
        ProfileError: If the file, profile or target can't be resolved
    """
    base_dir = Path(base_dir) if base_dir else Path.cwd()
    profiles_path = Path(path) if path else find_profiles_file(profiles_dir, base_dir)
    if profiles_path is None:
        searched = ", ".join(str(d / PROFILES_FILE_NAME) for d in profiles_search_dirs(profiles_dir, base_dir))
        raise ProfileError(
            f"No profiles.yml found (searched: {searched}).\n"
            "   Run 'sqlbot setup sakila' to create one."
        )

    profiles = load_profiles(profiles_path)
    profile_name = _match_profile_name(profiles, name)
    profile = profiles[profile_name] or {}
    if not isinstance(profile, dict):
        raise ProfileError(f"Profile '{profile_name}' must be a mapping with 'target' and 'outputs'")
    outputs = profile.get("outputs") or {}
    if not isinstance(outputs, dict):
        raise ProfileError(f"'outputs' of profile '{profile_name}' must be a mapping of target names")
    if not outputs:
        raise ProfileError(f"Profile '{profile_name}' has no outputs")

    target_name = target or profile.get("target")
    if not target_name:
        if len(outputs) == 1:
            target_name = next(iter(outputs))
        else:
            raise ProfileError(f"Profile '{profile_name}' has several outputs and no default target")
    target_name = str(render_env_vars(target_name))
    if target_name not in outputs:
        raise ProfileError(
            f"Target '{target_name}' not found in profile '{profile_name}' "
            f"(available: {', '.join(sorted(outputs))})"
        )

    output = render_env_vars(outputs[target_name] or {})
    if not isinstance(output, dict):
        raise ProfileError(f"Target '{target_name}' of profile '{profile_name}' must be a mapping of connection settings")
    connection = resolve_output(output, base_dir)
    logger.debug("Resolved profile %s.%s from %s -> %s", profile_name, target_name, profiles_path, connection.describe())

    return ResolvedProfile(
        name=str(profile_name),
        target=target_name,
        db_type=connection.db_type,
        connection=connection,
        source=profiles_path,
        output=output,
    )


def list_profiles(profiles_dir: Optional[str] = None, base_dir: Optional[Path] = None) -> List[str]:
    """Names of profiles in the discovered profiles.yml (empty if none)."""
    path = find_profiles_file(profiles_dir, base_dir)
    if path is None:
        return []
    return sorted(str(name) for name in load_profiles(path))


def write_profile(name: str, outputs: Dict[str, Any], path: Path, target: str = "dev") -> Path:
    """
    Add or replace one profile in a profiles.yml, keeping the others.

    Raises:
        ProfileError: If the existing file is invalid or can't be written
    """
    path = Path(path)
    data: Dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ProfileError(f"Invalid YAML in {path}: {e}")
        if not isinstance(data, dict):
            raise ProfileError(f"{path} must contain a mapping of profile names")

    data[name] = {"target": target, "outputs": outputs}
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ProfileError(f"Cannot write profiles file {path}: {e}")
    return path
