"""Configuration helpers shared by the core and the web surface."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
import json
import logging
import os
from typing import Any, Mapping

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path(os.environ.get("TRANSCONNECT_HOME", Path.home() / ".transconnect"))
SETTINGS_PATH = CONFIG_DIR / "settings.json"


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the API clients and local storage."""

    default_source_language: str = "en"
    default_target_language: str = "es"
    translate_model: str = "gpt-4o-mini"
    transcribe_model: str = "whisper-1"
    tts_model: str = "tts-1"
    min_request_interval: float = 1.0
    max_retries: int = 3
    request_timeout: float = 60.0
    max_audio_seconds: int = 120
    data_dir: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Settings":
        """Create :class:`Settings` from any mapping, ignoring unknown keys."""
        defaults = cls()
        return cls(
            default_source_language=str(
                payload.get("default_source_language", payload.get("sourceLanguage", defaults.default_source_language))
            ),
            default_target_language=str(
                payload.get("default_target_language", payload.get("targetLanguage", defaults.default_target_language))
            ),
            translate_model=str(payload.get("translate_model") or defaults.translate_model),
            transcribe_model=str(payload.get("transcribe_model") or defaults.transcribe_model),
            tts_model=str(payload.get("tts_model") or defaults.tts_model),
            min_request_interval=_coerce_float(payload.get("min_request_interval"), defaults.min_request_interval),
            max_retries=max(1, int(_coerce_float(payload.get("max_retries"), defaults.max_retries))),
            request_timeout=_coerce_float(payload.get("request_timeout"), defaults.request_timeout),
            max_audio_seconds=int(_coerce_float(payload.get("max_audio_seconds"), defaults.max_audio_seconds)),
            data_dir=_coerce_optional_str(payload.get("data_dir")),
        )

    def to_mapping(self) -> dict[str, Any]:
        """Serialize to a mapping suitable for JSON dumps."""
        return asdict(self)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir) if self.data_dir else CONFIG_DIR / "data"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk, falling back to defaults."""

    settings_path = path or SETTINGS_PATH
    try:
        raw = settings_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        LOGGER.debug("No settings.json found at %s; using defaults", settings_path)
        return Settings()
    except OSError as exc:  # pragma: no cover - filesystem failure
        LOGGER.warning("Failed reading settings at %s: %s", settings_path, exc)
        return Settings()

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Invalid JSON in %s: %s", settings_path, exc)
        return Settings()

    return Settings.from_mapping(payload)


def save_settings(settings: Settings, path: Path | None = None) -> None:
    """Persist settings to disk in JSON format."""

    settings_path = path or SETTINGS_PATH
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(settings.to_mapping(), indent=2, sort_keys=True)
    settings_path.write_text(payload, encoding="utf-8")
    LOGGER.debug("Saved settings to %s", settings_path)


def _coerce_float(value: Any, default: float) -> float:
    if value in (None, ""):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        LOGGER.warning("Ignoring invalid numeric setting %r", value)
        return default


def _coerce_optional_str(value: Any) -> str | None:
    if value in (None, "", "default"):
        return None
    return str(value)


__all__ = [
    "Settings",
    "load_settings",
    "save_settings",
    "CONFIG_DIR",
    "SETTINGS_PATH",
]
