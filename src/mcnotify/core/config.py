"""Settings file handling."""

import os
import tomllib
from pathlib import Path

import tomlkit
from pydantic import BaseModel, Field, ValidationError

from .models import DEFAULT_INTERVAL_MS, MIN_INTERVAL_MS

# Constants
APP_NAME = "mcnotify"
PLUGIN_NAME = "cfmrmod"
DEFAULT_CONFIG_FILE = f"data/{PLUGIN_NAME}_notify_config.json"
DEFAULT_STATE_FILE = f"data/{PLUGIN_NAME}_notify_state.json"


class ConfigValidationError(Exception):
    """Settings validation failed."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class Settings(BaseModel):
    """Plugin settings from settings.toml."""

    config_file: str = DEFAULT_CONFIG_FILE
    state_file: str = DEFAULT_STATE_FILE
    enabled: bool = False
    interval: int = Field(default=DEFAULT_INTERVAL_MS, ge=MIN_INTERVAL_MS)
    request_timeout: int = Field(default=15000, gt=0)
    admin_authority: int = Field(default=3, ge=0, le=3)
    curseforge_api_key: str | None = None
    base_tick: float = Field(default=60.0, gt=0)
    startup_delay: float = Field(default=10.0, ge=0)

    @property
    def timeout_seconds(self) -> float:
        """Request timeout converted to seconds for httpx."""
        return self.request_timeout / 1000


def get_config_dir() -> Path:
    """Get XDG Base Directory compliant config directory.

    Returns:
        Path to config directory (XDG_CONFIG_HOME/mcnotify or ~/.config/mcnotify)
    """
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg_config_home:
        return Path(xdg_config_home) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_default_settings_path() -> Path:
    """Get default path for settings.toml."""
    return get_config_dir() / "settings.toml"


def resolve_data_path(path: str | Path) -> Path:
    """Resolve a data file path.

    Relative paths are resolved against the process working directory,
    absolute paths are returned unchanged.

    Args:
        path: Path string or Path object

    Returns:
        Absolute Path object
    """
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return Path.cwd() / candidate


def load_settings(path: Path | None = None) -> Settings:
    """Load settings.toml and return Settings.

    A missing file is not an error; defaults are returned instead.

    Args:
        path: Path to settings file (defaults to XDG_CONFIG_HOME/mcnotify/settings.toml)

    Returns:
        Settings instance

    Raises:
        ConfigValidationError: If the file is not valid TOML or holds invalid values
    """
    settings_path = path or get_default_settings_path()

    if not settings_path.exists():
        return Settings()

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(f"Invalid TOML: {e}") from e

    notify = data.get("notify", {})
    storage = data.get("storage", {})
    curseforge = data.get("curseforge", {})

    values = {
        **notify,
        **{k: v for k, v in storage.items() if k in ("config_file", "state_file")},
    }
    if curseforge.get("api_key"):
        values["curseforge_api_key"] = curseforge["api_key"]

    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigValidationError(f"Invalid value: {e}", errors=errors) from e


def generate_settings(
    path: Path | None = None,
    enabled: bool = True,
    interval_minutes: int = 30,
    admin_authority: int = 3,
    force: bool = False,
) -> Path:
    """Generate settings.toml.

    Args:
        path: Output path (defaults to XDG_CONFIG_HOME/mcnotify/settings.toml)
        enabled: Initial automatic-check switch
        interval_minutes: Default per-subscription interval in minutes
        admin_authority: Minimum role level required for notify commands
        force: Overwrite existing file

    Returns:
        Path to created settings file

    Raises:
        FileExistsError: If file exists and force=False
    """
    settings_path = path or get_default_settings_path()

    if settings_path.exists() and not force:
        raise FileExistsError(f"Settings file already exists: {settings_path}")

    settings_path.parent.mkdir(parents=True, exist_ok=True)

    doc = tomlkit.document()

    notify = tomlkit.table()
    notify.add("enabled", enabled)
    notify.add("interval", max(MIN_INTERVAL_MS, interval_minutes * 60 * 1000))
    notify["interval"].comment("milliseconds")
    notify.add("request_timeout", 15000)
    notify.add("admin_authority", admin_authority)
    notify["admin_authority"].comment("1 = everyone, 2 = admin, 3 = owner")
    doc.add("notify", notify)

    storage = tomlkit.table()
    storage.add("config_file", DEFAULT_CONFIG_FILE)
    storage.add("state_file", DEFAULT_STATE_FILE)
    doc.add("storage", storage)

    curseforge = tomlkit.table()
    curseforge.add(tomlkit.comment('api_key = ""  # optional, uses the mirror when unset'))
    doc.add("curseforge", curseforge)

    with open(settings_path, "w", encoding="utf-8") as f:
        f.write(tomlkit.dumps(doc))

    return settings_path
