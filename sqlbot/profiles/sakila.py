"""
Setup for the Sakila sample database.

``sqlbot download sakila`` fetches the SQLite build of Sakila into
``profiles/Sakila/data/sakila.db``. ``sqlbot setup sakila`` does that and
also writes the dbt profile, the knowledge file and a default config.
"""
import os
import shutil
import sqlite3
import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlbot.configs import SQLBotConfig, save_config, find_config_file, CONFIG_DIR_NAME
from sqlbot.knowledge import PACKAGED_KNOWLEDGE_DIR
from .dbt_profiles import write_profile, PROFILES_FILE_NAME

logger = logging.getLogger(__name__)

PROFILE_NAME = "Sakila"
DEFAULT_SAKILA_URL = "https://github.com/bradleygrant/sakila-sqlite3/raw/main/sakila_master.db"
DATABASE_RELATIVE_PATH = Path("profiles") / PROFILE_NAME / "data" / "sakila.db"
KNOWLEDGE_RELATIVE_PATH = Path("profiles") / PROFILE_NAME / "agents" / "sakila.md"

SQLITE_HEADER = b"SQLite format 3\x00"
REQUIRED_TABLES = ["film", "actor", "customer", "rental"]


class DownloadError(Exception):
    """Raised when the Sakila database can't be downloaded or verified."""
    pass


@dataclass
class SetupReport:
    """What ``setup_sakila`` created and what it left alone."""
    database_path: Path
    database_downloaded: bool
    profiles_path: Path
    knowledge_path: Path
    knowledge_written: bool
    config_path: Path
    config_written: bool


def sakila_url() -> str:
    return os.getenv("SQLBOT_SAKILA_URL") or DEFAULT_SAKILA_URL


def verify_sakila_database(path: Path) -> None:
    """
    Check that ``path`` is a SQLite file containing the core Sakila tables.

    Raises:
        DownloadError: If the file is not SQLite or tables are missing
    """
    path = Path(path)
    with open(path, "rb") as f:
        header = f.read(len(SQLITE_HEADER))
    if header != SQLITE_HEADER:
        raise DownloadError(f"{path} is not a SQLite database")

    try:
        conn = sqlite3.connect(path.resolve().as_uri() + "?mode=ro", uri=True)
        try:
            rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        raise DownloadError(f"Cannot read {path}: {e}")

    tables = {row[0].lower() for row in rows}
    missing = [t for t in REQUIRED_TABLES if t not in tables]
    if missing:
        raise DownloadError(f"{path} is missing Sakila tables: {', '.join(missing)}")


def download_sakila(
    dest: Optional[Path] = None,
    url: Optional[str] = None,
    force: bool = False,
) -> bool:
    """
    Download the Sakila SQLite database.

    Args:
        dest: Target file (default: profiles/Sakila/data/sakila.db under cwd)
        url: Source URL (default: SQLBOT_SAKILA_URL or the public sakila-sqlite3 build)
        force: Re-download even if the file exists

    Returns:
        True if a download happened, False if an existing file was kept

    Raises:
        DownloadError: If the download fails or the file isn't a Sakila database
    """
    dest = Path(dest) if dest else Path.cwd() / DATABASE_RELATIVE_PATH
    url = url or sakila_url()

    if dest.exists() and not force:
        logger.info("Sakila database already exists at %s", dest)
        return False

    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")

    logger.info("Downloading Sakila database from %s", url)
    try:
        urllib.request.urlretrieve(url, partial)
        verify_sakila_database(partial)
    except DownloadError:
        partial.unlink(missing_ok=True)
        raise
    except Exception as e:
        partial.unlink(missing_ok=True)
        raise DownloadError(
            f"Failed to download Sakila database: {e}\n"
            f"   Download it manually from {url}\n"
            f"   and place it at: {dest.absolute()}"
        )

    os.replace(partial, dest)
    logger.info("Sakila database saved to %s (%d bytes)", dest, dest.stat().st_size)
    return True


def sakila_profile_outputs(database_path: str) -> dict:
    """dbt profile outputs for the Sakila SQLite file."""
    return {
        "dev": {
            "type": "sqlite",
            "threads": 1,
            "database": "database",
            "schema": "main",
            "schemas_and_paths": {"main": database_path},
            "schema_directory": str(Path(database_path).parent),
        }
    }


def _profile_path_for(db_path: Path, base_dir: Path) -> str:
    # Relative paths resolve against the working directory at query time
    if base_dir.resolve() == Path.cwd().resolve():
        return DATABASE_RELATIVE_PATH.as_posix()
    return str(db_path.resolve())


def setup_sakila(base_dir: Optional[Path] = None, force: bool = False, url: Optional[str] = None) -> SetupReport:
    """
    Prepare a working directory for querying Sakila.

    Steps:
    1. Download the database (skipped if present, unless ``force``)
    2. Write the ``Sakila`` profile into ``.sqlbot/dbt/profiles.yml``
    3. Copy the packaged knowledge file into ``profiles/Sakila/agents/``
    4. Write ``.sqlbot/config.yml`` with ``profile: Sakila`` if no config exists

    Raises:
        DownloadError: If the database download fails
    """
    base_dir = Path(base_dir) if base_dir else Path.cwd()

    db_path = base_dir / DATABASE_RELATIVE_PATH
    downloaded = download_sakila(db_path, url=url, force=force)

    profiles_path = base_dir / CONFIG_DIR_NAME / "dbt" / PROFILES_FILE_NAME
    write_profile(PROFILE_NAME, sakila_profile_outputs(_profile_path_for(db_path, base_dir)), profiles_path)
    logger.info("Wrote %s profile to %s", PROFILE_NAME, profiles_path)

    knowledge_path = base_dir / KNOWLEDGE_RELATIVE_PATH
    knowledge_written = False
    if force or not knowledge_path.exists():
        knowledge_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(PACKAGED_KNOWLEDGE_DIR / "sakila.md", knowledge_path)
        knowledge_written = True

    existing_config = find_config_file(base_dir)
    config_written = False
    if existing_config is not None and existing_config.is_relative_to(base_dir):
        config_path = existing_config
    else:
        config_path = save_config(SQLBotConfig(profile=PROFILE_NAME), base_dir / CONFIG_DIR_NAME / "config.yml")
        config_written = True

    return SetupReport(
        database_path=db_path,
        database_downloaded=downloaded,
        profiles_path=profiles_path,
        knowledge_path=knowledge_path,
        knowledge_written=knowledge_written,
        config_path=config_path,
        config_written=config_written,
    )
