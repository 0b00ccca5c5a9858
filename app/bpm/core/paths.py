"""Default locations for bpm files, following the XDG base directory layout.

Only defaults live here; every location can be set explicitly in the
configuration file, and the configuration file itself can be moved with
``$BPM_CONFIG``.
"""

import os
from pathlib import Path

APP_NAME = "bpm"

CONFIG_ENV_VAR = "BPM_CONFIG"

# kind -> (environment variable, fallback relative to $HOME)
_XDG_BASES: dict[str, tuple[str, str]] = {
    "config": ("XDG_CONFIG_HOME", ".config"),
    "state": ("XDG_STATE_HOME", ".local/state"),
    "cache": ("XDG_CACHE_HOME", ".cache"),
}


def _app_dir(kind: str) -> Path:
    env_var, fallback = _XDG_BASES[kind]
    base = os.environ.get(env_var)
    root = Path(base) if base else Path.home() / fallback
    return root / APP_NAME


def get_config_dir() -> Path:
    """Directory holding ``config.toml`` and ``theme.toml``."""
    return _app_dir("config")


def get_state_dir() -> Path:
    """Directory holding the install database."""
    return _app_dir("state")


def get_cache_dir() -> Path:
    """Default artifact cache directory."""
    return _app_dir("cache")


def get_config_path() -> Path:
    """Return ``$BPM_CONFIG`` when set, else ``config.toml`` in the config dir."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return get_config_dir() / "config.toml"


def get_database_path() -> Path:
    return get_state_dir() / "db.json"
