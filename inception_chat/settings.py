from __future__ import annotations

import json
import logging
import os
import tempfile
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from .results import FailureReason, Result

logger = logging.getLogger(__name__)

ALLOWED_MODELS: tuple[str, ...] = (
    "mercury",
    "mercury-2",
    "mercury-coder",
    "mercury-coder-small",
    "mercury-coder-large",
)
ALLOWED_THEMES: tuple[str, ...] = ("dark", "light", "auto")
MAX_TOKENS_LIMIT = 16384

API_KEY_FIELD = "apiKey"
PREFERENCE_FIELDS: tuple[str, ...] = ("model", "maxTokens", "theme")

DEFAULT_SETTINGS: dict[str, Any] = {
    "model": "mercury-2",
    "maxTokens": MAX_TOKENS_LIMIT,
    "theme": "dark",
    "apiKey": "",
}

SECRET_DIR_MODE = 0o700
SECRET_FILE_MODE = 0o600


@dataclass(frozen=True)
class Settings:
    model: str = DEFAULT_SETTINGS["model"]
    max_tokens: int = DEFAULT_SETTINGS["maxTokens"]
    theme: str = DEFAULT_SETTINGS["theme"]
    api_key: str = DEFAULT_SETTINGS["apiKey"]

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "maxTokens": self.max_tokens,
            "theme": self.theme,
            "apiKey": self.api_key,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Settings":
        return cls(
            model=payload["model"],
            max_tokens=payload["maxTokens"],
            theme=payload["theme"],
            api_key=payload["apiKey"],
        )


def validate_model(value: Any) -> str | None:
    return value if isinstance(value, str) and value in ALLOWED_MODELS else None


def validate_theme(value: Any) -> str | None:
    return value if isinstance(value, str) and value in ALLOWED_THEMES else None


def validate_max_tokens(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        return None
    return parsed if 1 <= parsed <= MAX_TOKENS_LIMIT else None


def validate_api_key(value: Any) -> str | None:
    return value if isinstance(value, str) else None


_VALIDATORS = {
    "model": validate_model,
    "maxTokens": validate_max_tokens,
    "theme": validate_theme,
    "apiKey": validate_api_key,
}


def pick_valid_preferences(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only known preference keys whose values pass validation."""

    picked: dict[str, Any] = {}
    for key in PREFERENCE_FIELDS:
        if key not in payload:
            continue
        value = _VALIDATORS[key](payload[key])
        if value is not None:
            picked[key] = value
    return picked


def _read_json(path: Path) -> dict[str, Any] | None:
    # Missing, unreadable and corrupt files all mean "nothing stored"
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return None
    if not isinstance(payload, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return None
    return payload


def _write_json(path: Path, payload: Mapping[str, Any], mode: int | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        if mode is not None:
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class SettingsStore:
    """
    User preferences plus the API key, kept in two separate files.

    ``settings_path`` holds ``model``, ``maxTokens`` and ``theme`` in the app
    data directory. ``secret_path`` holds only ``{"apiKey": ...}`` in a
    private directory with owner-only permissions. Older releases kept the key
    in the general file; :meth:`load` moves it across the first time it runs.

    The two files are separate resources and each write commits on its own.
    :meth:`save` writes preferences before the key, so a ``storage_error``
    from the key write can leave the new preferences already saved.
    """

    def __init__(self, settings_path: Path, secret_path: Path) -> None:
        self._settings_path = settings_path
        self._secret_path = secret_path

    @property
    def settings_path(self) -> Path:
        return self._settings_path

    @property
    def secret_path(self) -> Path:
        return self._secret_path

    def load(self) -> Settings:
        merged = deepcopy(DEFAULT_SETTINGS)

        general = _read_json(self._settings_path) or {}
        merged.update(pick_valid_preferences(general))

        api_key = self._read_api_key()
        if api_key is None:
            api_key = self._migrate_legacy_key(general)
        elif API_KEY_FIELD in general:
            # A previous migration stopped before cleaning up the general file
            self._remove_legacy_key(general)
        if api_key is not None:
            merged[API_KEY_FIELD] = api_key

        return Settings.from_dict(merged)

    def save(self, settings: Mapping[str, Any]) -> Result[None]:
        if not isinstance(settings, Mapping):
            return Result.failure(FailureReason.INVALID_SETTING, "Settings must be a mapping.")

        updates: dict[str, Any] = {}
        for key, validator in _VALIDATORS.items():
            if key not in settings or settings[key] is None:
                continue
            value = validator(settings[key])
            if value is None:
                return Result.failure(
                    FailureReason.INVALID_SETTING, f"Invalid value for {key}: {settings[key]!r}"
                )
            updates[key] = value

        api_key = updates.pop(API_KEY_FIELD, None)
        try:
            general = _read_json(self._settings_path) or {}
            if self._read_api_key() is None:
                self._migrate_legacy_key(general)
                general = _read_json(self._settings_path) or {}

            if updates:
                preferences = pick_valid_preferences(general)
                legacy_key = general.get(API_KEY_FIELD)
                if isinstance(legacy_key, str) and legacy_key and self._read_api_key() is None:
                    # Migration did not land, the general file is still the only copy
                    preferences[API_KEY_FIELD] = legacy_key
                preferences.update(updates)
                _write_json(self._settings_path, preferences)

            if api_key is not None:
                self._write_api_key(api_key)
        except OSError as exc:
            logger.exception("Failed to save settings")
            return Result.failure(FailureReason.STORAGE_ERROR, str(exc))

        return Result.success()

    def _read_api_key(self) -> str | None:
        # An empty key counts as no key, so a legacy key can still be migrated
        payload = _read_json(self._secret_path)
        if payload is None:
            return None
        return validate_api_key(payload.get(API_KEY_FIELD)) or None

    def _write_api_key(self, api_key: str) -> None:
        self._secret_path.parent.mkdir(mode=SECRET_DIR_MODE, parents=True, exist_ok=True)
        _write_json(self._secret_path, {API_KEY_FIELD: api_key}, mode=SECRET_FILE_MODE)

    def _migrate_legacy_key(self, general: Mapping[str, Any]) -> str | None:
        legacy_key = general.get(API_KEY_FIELD)
        if not isinstance(legacy_key, str) or not legacy_key:
            return None

        try:
            self._write_api_key(legacy_key)
        except OSError as exc:
            logger.warning("Could not migrate API key to %s: %s", self._secret_path, exc)
            return legacy_key

        if self._read_api_key() != legacy_key:
            logger.warning("API key migration to %s could not be verified", self._secret_path)
            return legacy_key

        logger.info("Moved API key from %s to %s", self._settings_path, self._secret_path)
        self._remove_legacy_key(general)
        return legacy_key

    def _remove_legacy_key(self, general: Mapping[str, Any]) -> None:
        remaining = {key: value for key, value in general.items() if key != API_KEY_FIELD}
        try:
            _write_json(self._settings_path, remaining)
        except OSError as exc:
            logger.warning("Could not remove legacy API key from %s: %s", self._settings_path, exc)
