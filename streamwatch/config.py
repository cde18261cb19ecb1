"""
Configuration Management

Settings come from three places, highest priority first:
- environment variables (TWITCH_CLIENT_SECRET, TELEGRAM_BOT_TOKEN, ...)
- a `.env` file in the working directory
- the JSON config file written by the setup wizard (see load_settings)

The JSON file keeps the nested layout produced by the setup wizard:

    {
      "twitch": {"channel": "...", "client_id": "...", "client_secret": "..."},
      "telegram": {"bot_token": "...", "chat_id": -100123, "thread_id": null},
      "language": "en",
      "check_interval_seconds": 60,
      "update_interval_minutes": 5,
      "setup_completed": true
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

from streamwatch.errors import ConfigError

DEFAULT_CONFIG_PATH = "config.json"

# (section, key in section) -> Settings field. Section None means top level.
_FILE_LAYOUT = {
    ("twitch", "channel"): "twitch_channel",
    ("twitch", "client_id"): "twitch_client_id",
    ("twitch", "client_secret"): "twitch_client_secret",
    ("telegram", "bot_token"): "telegram_bot_token",
    ("telegram", "chat_id"): "telegram_chat_id",
    ("telegram", "thread_id"): "telegram_thread_id",
    (None, "language"): "message_language",
    (None, "check_interval_seconds"): "check_interval_seconds",
    (None, "update_interval_minutes"): "update_interval_minutes",
    (None, "setup_completed"): "setup_completed",
}

# Fields the monitor cannot run without
REQUIRED_FIELDS = (
    "twitch_channel",
    "twitch_client_id",
    "twitch_client_secret",
    "telegram_bot_token",
    "telegram_chat_id",
)


class Settings(BaseSettings):
    """
    Application Settings

    Variable names match field names (case-insensitive), e.g.
    TWITCH_CLIENT_ID -> twitch_client_id.
    """

    # Twitch
    twitch_channel: Optional[str] = None
    twitch_client_id: Optional[str] = None
    twitch_client_secret: Optional[str] = None

    # Telegram
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[int] = None
    telegram_thread_id: Optional[int] = None  # Forum topic, groups only

    # Monitor
    message_language: str = "ru"  # en | ru
    check_interval_seconds: int = 60
    update_interval_minutes: int = 5
    setup_completed: bool = False
    simulate_end_file: str = "simulate_end"  # Debug sentinel, forces stream end
    http_timeout_seconds: float = 15.0

    # Logging
    log_level: str = "INFO"
    log_categories: Optional[str] = None  # Comma-separated categories (twitch,telegram,monitor,system). If None, show all logs.

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment wins over values passed in from the JSON config file
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @field_validator("check_interval_seconds", "update_interval_minutes")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("interval must be greater than zero")
        return value

    @property
    def checks_per_update(self) -> int:
        """Number of poll cycles between periodic notification refreshes."""
        return max(1, (self.update_interval_minutes * 60) // self.check_interval_seconds)

    def missing_fields(self) -> List[str]:
        """Names of required fields that are not configured."""
        return [name for name in REQUIRED_FIELDS if getattr(self, name) in (None, "")]


def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map the nested file layout onto Settings field names, dropping unset values."""
    values: Dict[str, Any] = {}
    for (section, key), field in _FILE_LAYOUT.items():
        source = data if section is None else data.get(section) or {}
        if not isinstance(source, dict):
            raise ConfigError(f"'{section}' section must be an object")
        value = source.get(key)
        # Zero/empty means "not configured" in files written by older setups
        if value is None or value == "" or (field.endswith(("_seconds", "_minutes")) and value == 0):
            continue
        values[field] = value
    return values


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read the JSON config file as a flat dict of Settings fields.

    Raises:
        ConfigError: file missing or not valid JSON
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"failed to parse config: {e}")

    if not isinstance(data, dict):
        raise ConfigError("config root must be a JSON object")

    return _flatten(data)


def load_settings(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Load settings from the JSON config file, with environment overrides.

    Raises:
        ConfigError: file missing, not valid JSON, or values fail validation
    """
    values = read_config_file(path)
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}")


def save_settings(path: Union[str, Path], config: Settings) -> None:
    """Write settings back in the nested JSON layout."""
    data: Dict[str, Any] = {"twitch": {}, "telegram": {}}
    for (section, key), field in _FILE_LAYOUT.items():
        target = data if section is None else data[section]
        target[key] = getattr(config, field)

    Path(path).write_text(
        json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
    )


settings = Settings()
