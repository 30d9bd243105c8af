"""Type-specific field extraction. Every function here is total and never raises."""

import re
from typing import Any, Mapping

from livelog.classifier import is_present
from livelog.models import (
    DockerDetails,
    EmbeddedRequest,
    FileDetails,
    HttpDetails,
    JournaldDetails,
)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "CONNECT", "TRACE")

# Combined/common log format; referer and user agent are optional
_ACCESS_LOG_RE = re.compile(
    r'^(?P<host>\S+) \S+ \S+ '
    r'\[(?P<time>[^\]]+)\] '
    r'"(?P<request>[^"]*)" '
    r'(?P<status>\d{3}|-) '
    r'(?P<size>\d+|-)'
    r'(?: "(?P<referer>[^"]*)" "(?P<user_agent>[^"]*)")?'
)

_REQUEST_LINE_RE = re.compile(
    r'\b(?P<method>' + "|".join(HTTP_METHODS) + r')\s+(?P<path>/\S*)'
    r'(?:\s+(?P<protocol>HTTP/\d(?:\.\d)?))?'
)


def _str_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _first(attributes: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = _str_or_none(attributes.get(key))
        if value is not None:
            return value
    return None


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isascii() and stripped.isdigit():
            return int(stripped)
    return None


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def service_name_alias(raw: Mapping[str, Any]) -> str | None:
    """First non-empty of serviceName, service_name, service."""
    return _first(raw, "serviceName", "service_name", "service")


def extract_http(attributes: Mapping[str, Any]) -> HttpDetails | None:
    """HTTP fields. Method, path and status code are all required."""
    method = _first(attributes, "http.method")
    path = _first(attributes, "http.path")
    status_code = _to_int(attributes.get("http.status_code"))
    if not method or not path or not status_code:
        return None

    duration = attributes.get("http.response_time_ms")
    if not is_present(duration):
        duration = attributes.get("duration")

    return HttpDetails(
        method=method.upper(),
        path=path,
        status_code=status_code,
        duration_ms=_to_float(duration),
        client_ip=_first(attributes, "http.client_ip", "ip"),
        user_agent=_first(attributes, "http.user_agent"),
        host=_first(attributes, "http.host"),
        headers=attributes.get("headers"),
        body=attributes.get("body"),
        query=attributes.get("query"),
    )


def extract_docker(attributes: Mapping[str, Any], service_name: str | None = None) -> DockerDetails:
    return DockerDetails(
        container_name=_first(attributes, "container.name", "docker.container", "container") or service_name,
        container_id=_first(attributes, "container.id"),
        image=_first(attributes, "container.image", "docker.image"),
    )


def extract_journald(attributes: Mapping[str, Any]) -> JournaldDetails:
    return JournaldDetails(
        unit=_first(attributes, "systemd.unit", "journal.unit", "unit"),
        message=_first(attributes, "message"),
    )


def extract_file(attributes: Mapping[str, Any], service_name: str | None = None,
                 message: str = "") -> FileDetails:
    return FileDetails(
        file_path=_first(attributes, "file_path") or service_name,
        embedded_request=detect_embedded_request(message),
    )


def split_file_path(path: str) -> tuple[str, str | None]:
    """Split on the final separator into (leaf, directory).

    An empty remainder means no directory; a trailing separator keeps the
    whole path as the leaf.
    """
    index = max(path.rfind("/"), path.rfind("\\"))
    if index < 0:
        return path, None
    leaf = path[index + 1:] or path
    directory = path[:index]
    return leaf, directory or None


def detect_embedded_request(message: Any) -> EmbeddedRequest | None:
    """Recognise an HTTP request embedded in a free-text message.

    Tries an access-log line first, then a bare "METHOD /path" pattern.
    """
    if not isinstance(message, str) or not message:
        return None

    m = _ACCESS_LOG_RE.match(message.strip())
    if m:
        parts = m.group("request").split(" ", 2)
        if len(parts) >= 2 and parts[0].upper() in HTTP_METHODS:
            status = m.group("status")
            return EmbeddedRequest(
                method=parts[0].upper(),
                path=parts[1],
                protocol=parts[2] if len(parts) == 3 else None,
                client_ip=m.group("host"),
                status_code=int(status) if status != "-" else None,
                user_agent=m.group("user_agent") or None,
            )

    m = _REQUEST_LINE_RE.search(message)
    if m:
        return EmbeddedRequest(
            method=m.group("method"),
            path=m.group("path"),
            protocol=m.group("protocol"),
        )
    return None
