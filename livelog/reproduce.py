"""Rebuild an equivalent curl command for a logged request, with secrets redacted."""

import json
import shlex
from typing import Any, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from livelog.models import FileDetails, HttpDetails, LogRecord

REDACTED = "[REDACTED]"

# Matched against keys lower-cased with separators stripped, so
# "X-Api-Key", "api_key" and "ApiKey" all hit "apikey"
SENSITIVE_MARKERS = ("password", "passwd", "secret", "token", "apikey", "authorization")

BODY_METHODS = ("POST", "PUT", "PATCH")

DEFAULT_HOST = "localhost:3000"


def _normalize_key(key: str) -> str:
    return "".join(c for c in key.lower() if c not in "-_. ")


def is_sensitive_key(key: Any) -> bool:
    if not isinstance(key, str):
        return False
    normalized = _normalize_key(key)
    return any(marker in normalized for marker in SENSITIVE_MARKERS)


def redact(value: Any) -> Any:
    """Return a copy with every value under a sensitive key replaced, at any depth."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if is_sensitive_key(key) else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def redact_query_string(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    if not pairs:
        return query
    return urlencode([(k, REDACTED if is_sensitive_key(k) else v) for k, v in pairs])


def redact_path(path: str) -> str:
    """Redact sensitive parameters in a path's query string."""
    parts = urlsplit(path)
    if not parts.query:
        return path
    return urlunsplit(parts._replace(query=redact_query_string(parts.query)))


def redact_body(body: Any) -> str | None:
    """Render a request body with secrets removed.

    Structured bodies and JSON strings are redacted key by key; form-encoded
    strings are redacted per parameter.
    """
    if body is None or body == "":
        return None
    if isinstance(body, (Mapping, list, tuple)):
        return json.dumps(redact(body))
    if not isinstance(body, str):
        return json.dumps(body)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        if "=" in body and "\n" not in body:
            return redact_query_string(body)
        return body
    if isinstance(parsed, (dict, list)):
        return json.dumps(redact(parsed))
    return body


def build_curl_command(method: str, path: str, host: str | None = None, body: Any = None,
                       headers: Any = None, query: Any = None) -> str:
    """Build a multi-line curl command reproducing the request."""
    method = (method or "GET").upper()
    domain = host or DEFAULT_HOST
    scheme = "http" if "localhost" in domain else "https"

    target = redact_path(path if path.startswith("/") else f"/{path}")
    if isinstance(query, Mapping) and query:
        extra = urlencode(redact(query))
        target += ("&" if "?" in target else "?") + extra

    lines = [f"curl -X {method}"]
    if isinstance(headers, Mapping):
        for name, value in redact(headers).items():
            lines.append(f"-H {shlex.quote(f'{name}: {value}')}")

    rendered_body = redact_body(body) if method in BODY_METHODS else None
    if rendered_body is not None:
        has_content_type = isinstance(headers, Mapping) and any(
            str(name).lower() == "content-type" for name in headers
        )
        if not has_content_type:
            lines.append(f"-H {shlex.quote('Content-Type: application/json')}")
        lines.append(f"-d {shlex.quote(rendered_body)}")

    lines.append(shlex.quote(f"{scheme}://{domain}{target}"))
    return " \\\n  ".join(lines)


def reproduce_record(record: LogRecord, default_host: str = DEFAULT_HOST) -> str | None:
    """curl command for an HTTP record or a file record whose body is an access-log line."""
    details = record.details
    if isinstance(details, HttpDetails):
        return build_curl_command(
            details.method,
            details.path,
            host=details.host or default_host,
            body=details.body,
            headers=details.headers,
            query=details.query,
        )
    if isinstance(details, FileDetails) and details.embedded_request is not None:
        request = details.embedded_request
        return build_curl_command(request.method, request.path, host=default_host)
    return None
