from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

APP_NAME = "Inception Chat"
DEFAULT_API_URL = "https://api.inceptionlabs.ai/v1/chat/completions"

DATA_DIR_ENV = "INCEPTION_CHAT_DATA_DIR"
CONFIG_DIR_ENV = "INCEPTION_CHAT_CONFIG_DIR"
API_URL_ENV = "INCEPTION_CHAT_API_URL"
ENVIRONMENT_ENV = "INCEPTION_CHAT_ENV"

SETTINGS_FILENAME = "settings.json"
SECRET_FILENAME = "config.json"
DATABASE_FILENAME = "inception-chat.db"


def default_data_dir() -> Path:
    """Per-user application data directory for the current platform."""

    if sys.platform.startswith("win"):
        base = os.getenv("APPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        base = os.getenv("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_NAME


def default_config_dir() -> Path:
    # The API key lives outside the app data directory on purpose
    return Path.home() / ".inception"


def _path_from_env(env_var: str, fallback: Path) -> Path:
    override = os.getenv(env_var)
    if override:
        return Path(override).expanduser().resolve()
    return fallback


@dataclass(frozen=True)
class AppPaths:
    data_dir: Path
    config_dir: Path

    @classmethod
    def from_env(cls) -> "AppPaths":
        return cls(
            data_dir=_path_from_env(DATA_DIR_ENV, default_data_dir()),
            config_dir=_path_from_env(CONFIG_DIR_ENV, default_config_dir()),
        )

    @property
    def settings_path(self) -> Path:
        return self.data_dir / SETTINGS_FILENAME

    @property
    def secret_path(self) -> Path:
        return self.config_dir / SECRET_FILENAME

    @property
    def database_path(self) -> Path:
        return self.data_dir / DATABASE_FILENAME


def _is_development() -> bool:
    return os.getenv(ENVIRONMENT_ENV, "").strip().lower() == "development"


@dataclass
class AppConfig:
    paths: AppPaths = field(default_factory=AppPaths.from_env)
    api_url: str = field(default_factory=lambda: os.getenv(API_URL_ENV) or DEFAULT_API_URL)
    request_timeout: float = 60.0
    recent_limit: int = 20
    development: bool = field(default_factory=_is_development)
