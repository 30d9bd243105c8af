"""Canonical record model for the live log view."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class SourceType(Enum):
    HTTP = "http"
    DOCKER = "docker"
    JOURNALD = "journald"
    FILE = "file"
    UNKNOWN = "unknown"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}

# Upstream severity labels folded onto the four display levels
_LEVEL_ALIASES = {
    "WARNING": LogLevel.WARN,
    "ERR": LogLevel.ERROR,
    "CRITICAL": LogLevel.ERROR,
    "FATAL": LogLevel.ERROR,
    "EMERGENCY": LogLevel.ERROR,
    "ALERT": LogLevel.ERROR,
    "TRACE": LogLevel.DEBUG,
    "NOTICE": LogLevel.INFO,
}


def parse_level(label: Any) -> LogLevel:
    """Case-normalize a severity label. Absent or unrecognised labels are INFO."""
    if not isinstance(label, str) or not label.strip():
        return LogLevel.INFO
    upper = label.strip().upper()
    try:
        return LogLevel(upper)
    except ValueError:
        return _LEVEL_ALIASES.get(upper, LogLevel.INFO)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


@dataclass(frozen=True)
class EmbeddedRequest:
    """HTTP request line recovered from a free-text message body."""
    method: str
    path: str
    protocol: str | None = None
    client_ip: str | None = None
    status_code: int | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class HttpDetails:
    method: str
    path: str
    status_code: int
    duration_ms: float | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    host: str | None = None
    headers: Any = None
    body: Any = None
    query: Any = None


@dataclass(frozen=True)
class DockerDetails:
    container_name: str | None = None
    container_id: str | None = None
    image: str | None = None


@dataclass(frozen=True)
class JournaldDetails:
    unit: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class FileDetails:
    file_path: str | None = None
    embedded_request: EmbeddedRequest | None = None


Details = HttpDetails | DockerDetails | JournaldDetails | FileDetails | None


@dataclass(frozen=True)
class LogRecord:
    id: str
    timestamp: datetime
    display_timestamp: str
    level: LogLevel
    source_type: SourceType
    source_name: str
    message: str
    directory_path: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    details: Details = None

    def __post_init__(self):
        # Freeze the attribute bag so the record stays immutable after creation
        if not isinstance(self.attributes, MappingProxyType):
            object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def method(self) -> str:
        if isinstance(self.details, HttpDetails):
            return self.details.method
        value = self.attributes.get("method")
        return value if isinstance(value, str) else ""

    @property
    def client_ip(self) -> str:
        if isinstance(self.details, HttpDetails) and self.details.client_ip:
            return self.details.client_ip
        value = self.attributes.get("ip")
        return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class Service:
    id: str
    name: str
    description: str | None = None
