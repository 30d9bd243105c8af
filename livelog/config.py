"""Configuration loading from an optional YAML file and environment variables.

Precedence: environment > YAML > dataclass defaults.
"""

import os
import logging
from dataclasses import dataclass, fields
from datetime import timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    ws_base_url: str = "ws://localhost:8080"
    api_base_url: str = "http://localhost:8080"
    auth_base_url: str = "http://localhost:3000"
    service_id: str = ""                 # preselected service, like ?service= in a URL
    session_cookie_name: str = "better-auth.session_token"
    session_cookie: str = ""             # raw Cookie header value
    cookie_file: str = ""                # Netscape-format cookie jar
    buffer_capacity: int = 1000
    suggestion_limit: int = 5
    reconnect_attempts: int = 0          # 0 = never reconnect automatically
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 60.0
    request_timeout: float = 10.0
    display_timezone: str = ""           # empty = local time
    default_request_host: str = "localhost:3000"

    def __post_init__(self):
        if self.buffer_capacity <= 0:
            raise ValueError(f"buffer_capacity must be positive, got {self.buffer_capacity}")
        if self.suggestion_limit < 0:
            raise ValueError(f"suggestion_limit must not be negative, got {self.suggestion_limit}")
        if self.reconnect_attempts < 0:
            raise ValueError(f"reconnect_attempts must not be negative, got {self.reconnect_attempts}")


# env var -> (field name, converter)
_ENV_OVERRIDES = {
    "ILOG_WS_URL": ("ws_base_url", str),
    "ILOG_API_URL": ("api_base_url", str),
    "ILOG_AUTH_URL": ("auth_base_url", str),
    "ILOG_SERVICE": ("service_id", str),
    "ILOG_SESSION_COOKIE": ("session_cookie", str),
    "ILOG_COOKIE_FILE": ("cookie_file", str),
    "BUFFER_CAPACITY": ("buffer_capacity", int),
    "SUGGESTION_LIMIT": ("suggestion_limit", int),
    "RECONNECT_ATTEMPTS": ("reconnect_attempts", int),
    "RECONNECT_BASE_DELAY": ("reconnect_base_delay", float),
    "RECONNECT_MAX_DELAY": ("reconnect_max_delay", float),
    "REQUEST_TIMEOUT": ("request_timeout", float),
    "DISPLAY_TIMEZONE": ("display_timezone", str),
    "DEFAULT_REQUEST_HOST": ("default_request_host", str),
}

# field name -> converter, for YAML values
_FIELD_CONVERTERS = {field_name: convert for field_name, convert in _ENV_OVERRIDES.values()}
_FIELD_CONVERTERS.update(session_cookie_name=str)


def _convert(name: str, convert, value):
    try:
        return convert(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {name}: {value!r}") from e


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def load_config(yaml_data: dict | None = None) -> Config:
    """Build Config from parsed YAML data and environment overrides."""
    known = {f.name for f in fields(Config)}
    values = {}
    for key, value in (yaml_data or {}).items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        values[key] = _convert(key, _FIELD_CONVERTERS[key], value)

    for env_name, (field_name, convert) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is not None:
            values[field_name] = _convert(env_name, convert, raw)

    return Config(**values)


def resolve_timezone(name: str) -> tzinfo | None:
    """Display zone for a config value; None means local time."""
    if not name:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown display timezone: {name}") from e
