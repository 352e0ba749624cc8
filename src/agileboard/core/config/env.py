"""Environment loading helpers.

The two Supabase credentials usually live in a .env file next to the
project. Layers, highest precedence first:
- OS environment
- Project environment files (.env.local, then .env)
- User environment file ($XDG_CONFIG_HOME/agileboard/.env)

A .env file never overrides a variable already exported in the shell.
load_layered_env() reports which file supplied each variable it set, so
commands can tell the user where their credentials came from.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

CREDENTIAL_KEYS = ("SUPABASE_URL", "SUPABASE_KEY")

# Source reported for a variable that was exported before any file was read
SHELL_SOURCE = "environment"


def user_env_files() -> list[Path]:
    return [get_xdg_config_home() / "agileboard" / ".env"]


def project_env_files(project_dir: Path | None = None) -> list[Path]:
    base = project_dir or Path.cwd()
    return [base / ".env", base / ".env.local"]


def read_env_file(path: Path) -> dict[str, str]:
    """Variables defined in ``path``; empty when the file is missing.

    Keys without a value (a bare ``NAME`` line) are skipped.
    """
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if key and value is not None}


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, Path]:
    """Export variables from the user and project .env files.

    Files are merged from lowest to highest precedence (user files, then
    project files in order), so a later file wins over an earlier one. The
    merged values are exported only for names absent from the OS
    environment when the call starts.

    Args:
        project_dir: base directory for project env paths (defaults to cwd)
        user_env_paths: explicit user env file paths
        project_env_paths: explicit project env file paths

    Returns:
        The file each exported variable was taken from, keyed by name
    """
    if user_env_paths is None:
        user_env_paths = user_env_files()
    if project_env_paths is None:
        project_env_paths = project_env_files(project_dir)

    merged: dict[str, tuple[str, Path]] = {}
    for path in [*map(Path, user_env_paths), *map(Path, project_env_paths)]:
        for key, value in read_env_file(path).items():
            merged[key] = (value, path)

    exported: dict[str, Path] = {}
    for key, (value, path) in merged.items():
        if key in os.environ:
            continue
        os.environ[key] = value
        exported[key] = path
    return exported


def credential_sources(exported: dict[str, Path]) -> dict[str, str | None]:
    """Where each Supabase credential came from.

    Args:
        exported: Result of load_layered_env()

    Returns:
        For each credential, the path of the .env file that set it,
        SHELL_SOURCE when it was already exported, or None when unset
    """
    sources: dict[str, str | None] = {}
    for key in CREDENTIAL_KEYS:
        if key in exported:
            sources[key] = str(exported[key])
        elif os.environ.get(key):
            sources[key] = SHELL_SOURCE
        else:
            sources[key] = None
    return sources
