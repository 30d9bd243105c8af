"""Output formatters: text rows per source type, NDJSON, ANSI colour and a detail view."""

import json
from typing import Callable

from livelog.models import (
    DockerDetails,
    FileDetails,
    HttpDetails,
    JournaldDetails,
    LogLevel,
    LogRecord,
    SourceType,
)
from livelog.reproduce import DEFAULT_HOST, redact, reproduce_record

# ANSI color codes
COLORS = {
    LogLevel.DEBUG: "\033[36m",   # cyan
    LogLevel.INFO: "\033[32m",    # green
    LogLevel.WARN: "\033[33m",    # yellow
    LogLevel.ERROR: "\033[31m",   # red
}
RESET = "\033[0m"


def _http_columns(record: LogRecord) -> str:
    d = record.details
    if not isinstance(d, HttpDetails):
        return record.source_name
    duration = f"{d.duration_ms:g}ms" if d.duration_ms is not None else "-"
    return f"{d.method} {d.path} {d.status_code} {duration} {d.client_ip or '-'}"


def _docker_columns(record: LogRecord) -> str:
    d = record.details
    image = d.image if isinstance(d, DockerDetails) and d.image else None
    return f"{record.source_name} ({image})" if image else record.source_name


def _journald_columns(record: LogRecord) -> str:
    d = record.details
    unit = d.unit if isinstance(d, JournaldDetails) and d.unit else record.source_name
    return unit


def _file_columns(record: LogRecord) -> str:
    return f"{record.source_name} [{record.directory_path or '-'}]"


def _unknown_columns(record: LogRecord) -> str:
    return record.source_name


ROW_FORMATTERS: dict[SourceType, Callable[[LogRecord], str]] = {
    SourceType.HTTP: _http_columns,
    SourceType.DOCKER: _docker_columns,
    SourceType.JOURNALD: _journald_columns,
    SourceType.FILE: _file_columns,
    SourceType.UNKNOWN: _unknown_columns,
}


def format_text(record: LogRecord) -> str:
    columns = ROW_FORMATTERS[record.source_type](record)
    return f"{record.display_timestamp} {record.level.value:<5} {columns} {record.message}"


def format_color(record: LogRecord) -> str:
    """Text row with the level coloured."""
    color = COLORS.get(record.level, "")
    columns = ROW_FORMATTERS[record.source_type](record)
    return f"{record.display_timestamp} {color}{record.level.value:<5}{RESET} {columns} {record.message}"


def format_json(record: LogRecord) -> str:
    """NDJSON: one JSON object per line, attributes redacted."""
    return json.dumps({
        "id": record.id,
        "timestamp": record.timestamp.isoformat(),
        "display_timestamp": record.display_timestamp,
        "level": record.level.value,
        "source_type": record.source_type.value,
        "source": record.source_name,
        "directory_path": record.directory_path,
        "message": record.message,
        "attributes": redact(dict(record.attributes)),
    }, default=str)


def format_detail(record: LogRecord, default_host: str = DEFAULT_HOST) -> str:
    """Expanded view: identity, redacted attributes and a reproduction command."""
    lines = [
        f"id:          {record.id}",
        f"source type: {record.source_type.value}",
        f"source:      {record.source_name}",
    ]
    if isinstance(record.details, FileDetails) and record.details.file_path:
        lines.append(f"file:        {record.details.file_path}")
    if record.attributes:
        lines.append("attributes:")
        rendered = json.dumps(redact(dict(record.attributes)), indent=2, sort_keys=True, default=str)
        lines.extend(f"  {line}" for line in rendered.splitlines())
    curl = reproduce_record(record, default_host)
    if curl:
        lines.append("curl:")
        lines.extend(f"  {line}" for line in curl.splitlines())
    return "\n".join(lines)


def get_formatter(output_format: str = "text", color: bool = False) -> Callable[[LogRecord], str]:
    """Factory that returns the right formatter based on args."""
    if output_format == "json":
        return format_json
    if color:
        return format_color
    return format_text
