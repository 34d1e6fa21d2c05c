"""
Global app configuration for the calibration database editor.

Settings are resolved from environment variables so the backend process and
the UI-side core agree without a shared settings file:

- CALDB_CONFIG: folder holding durable UI state (recent-file lists)
- CALDB_LOG_LEVEL: logging level for the backend (default INFO)
- CALDB_HOST / CALDB_PORT: bind address for the backend server
- CALDB_DESKTOP: "true" when launched by the desktop shell

The config folder location is determined by (in order of priority):
1. CALDB_CONFIG environment variable
2. Default platform-specific location (platformdirs user data dir)
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict

import platformdirs

APP_NAME = "caldb-editor"
APP_AUTHOR = "caldb"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def resolve_config_dir() -> Path:
    """Get the config directory following priority order."""
    env_config = os.environ.get("CALDB_CONFIG")
    if env_config:
        return Path(env_config)
    return Path(platformdirs.user_data_dir(APP_NAME, APP_AUTHOR))


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class AppSettings:
    """Process-wide settings snapshot."""
    config_dir: str
    log_level: str = "INFO"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    desktop_mode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            config_dir=str(resolve_config_dir()),
            log_level=os.environ.get("CALDB_LOG_LEVEL", "INFO").upper(),
            host=os.environ.get("CALDB_HOST", DEFAULT_HOST),
            port=_env_int("CALDB_PORT", DEFAULT_PORT),
            desktop_mode=_env_flag("CALDB_DESKTOP"),
        )


def load_settings() -> AppSettings:
    """Read settings from the environment.

    Called at startup and by tests that change the environment.
    """
    return AppSettings.from_env()
