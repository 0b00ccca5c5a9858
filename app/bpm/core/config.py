"""Configuration model and file I/O.

The configuration is a TOML file describing where the install database
and cache live, which providers to scan (in priority order) and which
mount points packages may install into::

    database = "/var/lib/bpm/db.json"

    [cache]
    dir = "/var/cache/bpm"
    retention = "30d"
    auto_clean = true

    [providers]
    local = "fs:///srv/packages"
    remote = { path = "https://packages.example.com/", note = "mirror" }

    [mount]
    TARGET = { path = "/opt/app", default = true }
    docs = "/opt/app/docs"
"""

import logging
import re
import tomllib
from pathlib import Path
from typing import Annotated, Any

import tomli_w
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from bpm.core.errors import ConfigError, ConfigNotFoundError, ConfigParseError
from bpm.core.paths import get_cache_dir, get_config_path, get_database_path
from bpm.utils.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)

# Mount point name used when an artifact declares none and no default is configured
DEFAULT_MOUNT_NAME = "TARGET"

_DURATION_PATTERN = re.compile(r"(\d+)([smhdw])")
_DURATION_FULL = re.compile(r"(?:\d+[smhdw])+")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


def parse_duration(value: str | int) -> int:
    """Parse a duration into seconds.

    Accepts integer seconds or unit strings such as ``"30d"``, ``"12h"``,
    ``"90m"``, ``"45s"`` and combinations like ``"1d12h"``.

    Raises:
        ValueError: If the value is negative or not a valid duration.

    Example:
        >>> parse_duration("1d12h")
        129600
    """
    if isinstance(value, bool):
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)
    if isinstance(value, int):
        if value < 0:
            msg = f"Duration cannot be negative: {value}"
            raise ValueError(msg)
        return value

    text = "".join(value.split()).lower()
    if text.isdigit():
        return int(text)
    if not _DURATION_FULL.fullmatch(text):
        msg = f"Invalid duration: '{value}'"
        raise ValueError(msg)
    return sum(int(n) * _DURATION_UNITS[unit] for n, unit in _DURATION_PATTERN.findall(text))


def _absolute(value: Any, what: str) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        msg = f"{what} must be an absolute path, got '{value}'"
        raise ValueError(msg)
    return path


class CacheConfig(BaseModel):
    """Cache section of the configuration.

    Attributes:
        dir: Cache directory.
        retention: Retention window in seconds.
        auto_clean: Evict expired entries after install operations.
        fetch_jobs: Maximum concurrent downloads.
        touch_on_uninstall: Refresh the cache entry of a package when it is uninstalled.
    """

    model_config = ConfigDict(extra="forbid")

    dir: Annotated[Path, Field(default_factory=get_cache_dir, description="Cache directory")]
    retention: Annotated[int, Field(description="Retention window in seconds")] = 30 * 86400
    auto_clean: Annotated[
        bool,
        Field(
            validation_alias=AliasChoices("auto_clean", "auto_clear"),
            description="Evict expired entries automatically",
        ),
    ] = False
    fetch_jobs: Annotated[int, Field(ge=1, le=64, description="Concurrent downloads")] = 4
    touch_on_uninstall: Annotated[
        bool,
        Field(description="Refresh cache entry on uninstall"),
    ] = False

    @field_validator("dir", mode="before")
    @classmethod
    def validate_dir(cls, value: Any) -> Path:
        """Require an absolute cache directory."""
        return _absolute(value, "cache.dir")

    @field_validator("retention", mode="before")
    @classmethod
    def validate_retention(cls, value: Any) -> int:
        """Accept duration strings for the retention window."""
        if not isinstance(value, str | int):
            msg = f"Invalid retention: {value!r}"
            raise ValueError(msg)
        return parse_duration(value)


class ScanConfig(BaseModel):
    """Scan section of the configuration.

    Attributes:
        threads: Maximum concurrent provider scans (0 = one per provider).
        timeout: Network timeout in seconds for scans and downloads.
    """

    model_config = ConfigDict(extra="forbid")

    threads: Annotated[int, Field(ge=0, description="Concurrent scans (0 = per provider)")] = 0
    timeout: Annotated[float, Field(gt=0, description="Network timeout in seconds")] = 30.0


class ProviderEntry(BaseModel):
    """A configured provider location.

    Attributes:
        path: Location (``fs:///abs``, ``/abs`` or ``http(s)://...``).
        note: Free-form description.
    """

    model_config = ConfigDict(extra="forbid")

    path: Annotated[str, Field(description="Provider location")]
    note: Annotated[str | None, Field(description="Description")] = None

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        """Reject relative filesystem locations."""
        if value.startswith(("http://", "https://")):
            return value
        _absolute(value.removeprefix("fs://"), "provider path")
        return value


class MountEntry(BaseModel):
    """A configured mount point.

    Attributes:
        path: Absolute install location.
        default: Use this mount for artifacts that declare none.
    """

    model_config = ConfigDict(extra="forbid")

    path: Annotated[Path, Field(description="Install location")]
    default: Annotated[bool, Field(description="Default mount point")] = False

    @field_validator("path", mode="before")
    @classmethod
    def validate_path(cls, value: Any) -> Path:
        """Require an absolute mount path."""
        return _absolute(value, "mount path")


def _entry_from_string(value: Any) -> Any:
    return {"path": value} if isinstance(value, str) else value


class BpmConfig(BaseModel):
    """Complete bpm configuration.

    Attributes:
        database: Install database file.
        lockfile: Lock file guarding the database (default: next to it).
        cache: Cache settings.
        scan: Scan settings.
        providers: Providers in priority order.
        mount: Mount points by name.
    """

    model_config = ConfigDict(extra="forbid")

    database: Annotated[
        Path, Field(default_factory=get_database_path, description="Install database file")
    ]
    lockfile: Annotated[Path | None, Field(description="Database lock file")] = None
    cache: Annotated[CacheConfig, Field(default_factory=CacheConfig)]
    scan: Annotated[ScanConfig, Field(default_factory=ScanConfig)]
    providers: Annotated[
        dict[str, ProviderEntry],
        Field(default_factory=dict, description="Providers in priority order"),
    ]
    mount: Annotated[
        dict[str, MountEntry],
        Field(default_factory=dict, description="Mount points by name"),
    ]

    @field_validator("database", "lockfile", mode="before")
    @classmethod
    def validate_file_path(cls, value: Any) -> Path | None:
        """Require absolute database and lock file paths."""
        if value is None:
            return None
        return _absolute(value, "database path")

    @field_validator("providers", "mount", mode="before")
    @classmethod
    def expand_short_entries(cls, value: Any) -> Any:
        """Accept plain strings as shorthand for ``{ path = ... }``."""
        if not isinstance(value, dict):
            return value
        return {name: _entry_from_string(entry) for name, entry in value.items()}

    @model_validator(mode="after")
    def validate_single_default(self) -> "BpmConfig":
        """Validate that at most one mount point is the default."""
        defaults = [name for name, entry in self.mount.items() if entry.default]
        if len(defaults) > 1:
            msg = f"Only one mount point can be the default, found: {', '.join(defaults)}"
            raise ValueError(msg)
        return self

    @property
    def default_mount(self) -> str:
        """Name of the mount point used when an artifact declares none."""
        for name, entry in self.mount.items():
            if entry.default:
                return name
        return DEFAULT_MOUNT_NAME

    def mount_path(self, name: str) -> Path | None:
        """Return the path of a mount point, or None if it is not declared."""
        entry = self.mount.get(name)
        return entry.path if entry is not None else None

    @property
    def lock_path(self) -> Path:
        """Lock file guarding the install database."""
        return self.lockfile or self.database.with_name(self.database.name + ".lock")


def load_config(path: Path | None = None) -> BpmConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated BpmConfig object.

    Raises:
        ConfigNotFoundError: If the config file doesn't exist.
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the content doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        raise ConfigNotFoundError(f"Config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        config = BpmConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content in {config_path}: {e}") from e

    logger.debug(
        "Loaded config %s: %d provider(s), %d mount point(s)",
        config_path,
        len(config.providers),
        len(config.mount),
    )
    return config


def save_config(config: BpmConfig, path: Path | None = None) -> Path:
    """Save configuration to a TOML file atomically.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    data = tomli_w.dumps(_config_to_dict(config)).encode("utf-8")
    try:
        atomic_write_bytes(config_path, data)
    except OSError as e:
        raise ConfigError(f"Failed to write config: {e}") from e
    return config_path


def _config_to_dict(config: BpmConfig) -> dict[str, Any]:
    """Convert BpmConfig to a dictionary for TOML serialization.

    Only includes non-None values to keep the file clean.
    """
    result: dict[str, Any] = {"database": str(config.database)}
    if config.lockfile is not None:
        result["lockfile"] = str(config.lockfile)

    result["cache"] = {
        "dir": str(config.cache.dir),
        "retention": config.cache.retention,
        "auto_clean": config.cache.auto_clean,
        "fetch_jobs": config.cache.fetch_jobs,
        "touch_on_uninstall": config.cache.touch_on_uninstall,
    }
    result["scan"] = {"threads": config.scan.threads, "timeout": config.scan.timeout}

    providers: dict[str, Any] = {}
    for name, provider in config.providers.items():
        if provider.note is None:
            providers[name] = provider.path
        else:
            providers[name] = {"path": provider.path, "note": provider.note}
    result["providers"] = providers

    mounts: dict[str, Any] = {}
    for name, mount in config.mount.items():
        if mount.default:
            mounts[name] = {"path": str(mount.path), "default": True}
        else:
            mounts[name] = str(mount.path)
    result["mount"] = mounts
    return result
