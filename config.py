"""
Relay configuration

Settings come from environment variables (a local .env file is loaded first),
optionally seeded by a JSON config file using the original camelCase keys:

    {
        "smartsheetAccessToken": "...",
        "sourceSheetId": 1234,
        "destinationSheetId": 5678,
        "webhookName": "sheet-relay",
        "callbackUrl": "https://relay.example.com/",
        "logLevel": "info"
    }

Environment variables always win over the file.
"""

import json
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from smartsheet_gateway import DEFAULT_API_BASE

DEFAULT_CONFIG_PATH = "config.json"

# env var -> (config.json key, settings field)
ENV_KEYS = {
    "SMARTSHEET_ACCESS_TOKEN": ("smartsheetAccessToken", "access_token"),
    "SOURCE_SHEET_ID": ("sourceSheetId", "source_sheet_id"),
    "DESTINATION_SHEET_ID": ("destinationSheetId", "destination_sheet_id"),
    "WEBHOOK_NAME": ("webhookName", "webhook_name"),
    "CALLBACK_URL": ("callbackUrl", "callback_url"),
    "LOG_LEVEL": ("logLevel", "log_level"),
    "PORT": ("port", "port"),
    "SMARTSHEET_API_BASE": ("apiBase", "api_base"),
    "SMARTSHEET_TIMEOUT_SECS": ("timeoutSecs", "timeout_secs"),
}

REQUIRED = ("SMARTSHEET_ACCESS_TOKEN", "SOURCE_SHEET_ID", "DESTINATION_SHEET_ID")


class ConfigError(ValueError):
    """Raised when a required setting is missing or malformed."""


class RelaySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    source_sheet_id: int
    destination_sheet_id: int
    webhook_name: str = "sheet-relay"
    callback_url: str = ""
    log_level: str = "info"
    port: int = 3000
    api_base: str = DEFAULT_API_BASE
    timeout_secs: float = 30.0


def _read_config_file(path: Optional[str]) -> dict:
    if not path or not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def _as_int(env_name: str, value) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{env_name} must be an integer, got {value!r}")


def _as_float(env_name: str, value) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{env_name} must be a number, got {value!r}")


def load_settings(config_path: Optional[str] = None, environ=None) -> RelaySettings:
    """Build the immutable settings object used for the whole process lifetime.

    ``environ`` defaults to ``os.environ`` after ``load_dotenv()``; tests pass
    a plain dict instead.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    path = config_path or environ.get("RELAY_CONFIG_PATH") or DEFAULT_CONFIG_PATH
    file_values = _read_config_file(path)

    raw = {}
    for env_name, (file_key, _field) in ENV_KEYS.items():
        value = environ.get(env_name)
        if value is None or str(value).strip() == "":
            value = file_values.get(file_key)
        if value is None or str(value).strip() == "":
            continue
        raw[env_name] = value

    missing = [name for name in REQUIRED if name not in raw]
    if missing:
        raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")

    values = {}
    for env_name, value in raw.items():
        field = ENV_KEYS[env_name][1]
        if field in ("source_sheet_id", "destination_sheet_id", "port"):
            values[field] = _as_int(env_name, value)
        elif field == "timeout_secs":
            values[field] = _as_float(env_name, value)
        else:
            values[field] = str(value).strip()

    values["api_base"] = values.get("api_base", DEFAULT_API_BASE).rstrip("/")
    return RelaySettings(**values)
