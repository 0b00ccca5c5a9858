"""Console colors for the bpm CLI.

Every color has a built-in default. Individual colors can be overridden in
``$XDG_CONFIG_HOME/bpm/theme.toml`` under a ``[colors]`` table; a broken
theme file is logged and ignored.
"""

import logging
import tomllib
from pathlib import Path
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, ValidationError
from rich.theme import Theme

from bpm.core.paths import get_config_dir

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _check_hex(value: str) -> str:
    color = value.strip()
    if not color.startswith("#"):
        raise ValueError(f"color {color!r} must start with '#'")
    digits = color[1:]
    if len(digits) not in (3, 6) or not set(digits) <= _HEX_DIGITS:
        raise ValueError(f"invalid hex color {color!r}, expected #RGB or #RRGGBB")
    return color


HexColor = Annotated[str, AfterValidator(_check_hex)]


class ThemeColors(BaseModel):
    """Named colors used by the CLI output."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: HexColor = "#ffffff"
    muted: HexColor = "#b2bec3"
    header: HexColor = "#69B9A1"
    border: HexColor = "#29526d"

    success: HexColor = "#03b971"
    warning: HexColor = "#f5b332"
    error: HexColor = "#f53263"
    info: HexColor = "#0ec1c8"

    # install outcomes
    added: HexColor = "#c1ff62"
    removed: HexColor = "#f53263"
    changed: HexColor = "#0e8ac8"

    package_name: HexColor = "#69B9A1"
    channel: HexColor = "#d44ebc"
    pinned: HexColor = "#faf870"


# Rich style name -> (modifier, ThemeColors field)
STYLE_MAP: dict[str, tuple[str, str]] = {
    "text": ("", "text"),
    "muted": ("", "muted"),
    "dim": ("", "muted"),
    "header": ("", "header"),
    "bold_header": ("bold", "header"),
    "border": ("", "border"),
    "success": ("", "success"),
    "warning": ("", "warning"),
    "error": ("bold", "error"),
    "info": ("", "info"),
    "added": ("", "added"),
    "removed": ("", "removed"),
    "changed": ("", "changed"),
    "package.name": ("bold", "package_name"),
    "package.version": ("", "muted"),
    "channel": ("", "channel"),
    "pinned": ("", "pinned"),
}


def get_user_theme_path() -> Path:
    """Return the location of the user's theme overrides."""
    return get_config_dir() / "theme.toml"


def _load_toml_colors(path: Path) -> dict[str, str] | None:
    """Read the ``[colors]`` table of a theme file.

    Returns None when the file is missing or unusable.
    """
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        logger.warning("Ignoring theme file %s: %s", path, e)
        return None

    colors = data.get("colors", {})
    if not isinstance(colors, dict):
        logger.warning("Ignoring theme file %s: 'colors' is not a table", path)
        return None
    return {str(key): value for key, value in colors.items() if isinstance(value, str)}


def load_theme() -> ThemeColors:
    """Return the default colors with any valid user overrides applied."""
    path = get_user_theme_path()
    overrides = _load_toml_colors(path)
    if not overrides:
        return ThemeColors()
    try:
        colors = ThemeColors.model_validate(overrides)
    except ValidationError as e:
        logger.warning("Invalid colors in %s, using defaults: %s", path, e)
        return ThemeColors()
    logger.debug("Applied %d color override(s) from %s", len(overrides), path)
    return colors


def get_rich_theme(colors: ThemeColors | None = None) -> Theme:
    """Build the Rich theme for ``colors`` (the loaded user theme by default)."""
    colors = colors or load_theme()
    styles = {
        name: f"{modifier} {getattr(colors, field)}".strip()
        for name, (modifier, field) in STYLE_MAP.items()
    }
    return Theme(styles)


_cached_theme: Theme | None = None


def get_theme() -> Theme:
    """Return the process-wide Rich theme, loading it on first use."""
    global _cached_theme
    if _cached_theme is None:
        _cached_theme = get_rich_theme()
    return _cached_theme
