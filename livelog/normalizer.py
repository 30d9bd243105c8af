"""LogNormalizer: turns an untrusted wire event into a canonical LogRecord."""

import itertools
import logging
import time
from datetime import datetime, tzinfo
from typing import Any, Mapping

from livelog.classifier import classify
from livelog.extractors import (
    extract_docker,
    extract_file,
    extract_http,
    extract_journald,
    service_name_alias,
    split_file_path,
)
from livelog.models import LogRecord, SourceType, parse_level
from livelog.timestamps import format_display_time, resolve_timestamp

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "unknown"

ATTRIBUTE_FIELDS = ("logAttributes", "log_attributes")
MESSAGE_FIELDS = ("body", "message", "Body")
LEVEL_FIELDS = ("severityText", "severity_text", "level")


def _first_field(raw: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = raw.get(name)
        if value is not None and value != "":
            return value
    return None


def _attributes(raw: Mapping[str, Any]) -> dict:
    for name in ATTRIBUTE_FIELDS:
        value = raw.get(name)
        if isinstance(value, Mapping):
            return dict(value)
    return {}


class LogNormalizer:
    """Total mapping from raw event dicts to LogRecords.

    Each instance keeps its own id sequence, so generated ids stay unique for
    the lifetime of the buffer it feeds.
    """

    def __init__(self, tz: tzinfo | None = None):
        self._tz = tz
        self._sequence = itertools.count(1)

    def _generate_id(self) -> str:
        return f"log-{int(time.time() * 1000)}-{next(self._sequence)}"

    def normalize(self, raw: Any, now: datetime | None = None) -> LogRecord:
        if not isinstance(raw, Mapping):
            logger.debug("Non-object event of type %s, normalizing as empty", type(raw).__name__)
            raw = {}

        timestamp = resolve_timestamp(raw, tz=self._tz, now=now)
        attributes = _attributes(raw)
        service_name = service_name_alias(raw)

        message = _first_field(raw, MESSAGE_FIELDS)
        message = message if isinstance(message, str) else ("" if message is None else str(message))

        raw_id = raw.get("id")
        record_id = str(raw_id) if raw_id is not None and raw_id != "" else self._generate_id()

        source_type = classify(attributes)
        details = None
        directory_path = None
        source_name = service_name or UNKNOWN_SOURCE

        if source_type is SourceType.HTTP:
            details = extract_http(attributes)
            if details is None:
                # Incomplete HTTP attributes fall through to generic handling
                source_type = SourceType.UNKNOWN
        elif source_type is SourceType.DOCKER:
            details = extract_docker(attributes, service_name)
            source_name = details.container_name or UNKNOWN_SOURCE
        elif source_type is SourceType.JOURNALD:
            details = extract_journald(attributes)
            source_name = details.unit or service_name or UNKNOWN_SOURCE
        elif source_type is SourceType.FILE:
            details = extract_file(attributes, service_name, message)
            if details.file_path:
                source_name, directory_path = split_file_path(details.file_path)
            else:
                source_name = UNKNOWN_SOURCE

        return LogRecord(
            id=record_id,
            timestamp=timestamp,
            display_timestamp=format_display_time(timestamp),
            level=parse_level(_first_field(raw, LEVEL_FIELDS)),
            source_type=source_type,
            source_name=source_name,
            message=message,
            directory_path=directory_path,
            attributes=attributes,
            details=details,
        )
