"""
Profiles module for SQLBot.

Contains:
1. dbt-style profiles.yml resolution
2. Sakila download and setup
"""

from .dbt_profiles import (
    ProfileError,
    ResolvedProfile,
    find_profiles_file,
    load_profiles,
    list_profiles,
    render_env_vars,
    resolve_output,
    resolve_profile,
    write_profile,
)
from .sakila import (
    DownloadError,
    SetupReport,
    download_sakila,
    setup_sakila,
    verify_sakila_database,
)

__all__ = [
    "ProfileError",
    "ResolvedProfile",
    "find_profiles_file",
    "load_profiles",
    "list_profiles",
    "render_env_vars",
    "resolve_output",
    "resolve_profile",
    "write_profile",
    "DownloadError",
    "SetupReport",
    "download_sakila",
    "setup_sakila",
    "verify_sakila_database",
]
