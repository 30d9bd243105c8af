"""Source classification over an event's attribute bag.

Priority order (first match wins):
  1. HTTP-shaped attribute       -> http
  2. Container-shaped attribute  -> docker
  3. systemd/journal unit        -> journald
  4. File path or file marker    -> file
  5. Otherwise                   -> unknown

An HTTP access log forwarded through a container carries both families of
attributes and classifies as http, the most specific signal.
"""

from collections import Counter
from typing import Any, Iterable, Mapping

from livelog.models import LogRecord, SourceType

HTTP_KEYS = ("http.method", "http.path", "http.status_code")
DOCKER_KEYS = ("container.name", "container.id", "docker.container")
JOURNALD_KEYS = ("systemd.unit", "journal.unit")
FILE_PATH_KEY = "file_path"
SOURCE_TYPE_KEY = "source_type"

# Tie-break order when counting the predominant type
_PREDOMINANCE_ORDER = (
    SourceType.HTTP,
    SourceType.FILE,
    SourceType.DOCKER,
    SourceType.JOURNALD,
    SourceType.UNKNOWN,
)


def is_present(value: Any) -> bool:
    return value is not None and value != ""


def _has_any(attributes: Mapping[str, Any], keys: Iterable[str]) -> bool:
    return any(is_present(attributes.get(key)) for key in keys)


def classify(attributes: Any) -> SourceType:
    """Assign exactly one SourceType to an attribute bag."""
    if not isinstance(attributes, Mapping):
        return SourceType.UNKNOWN
    if _has_any(attributes, HTTP_KEYS):
        return SourceType.HTTP
    if _has_any(attributes, DOCKER_KEYS):
        return SourceType.DOCKER
    if _has_any(attributes, JOURNALD_KEYS):
        return SourceType.JOURNALD
    if is_present(attributes.get(FILE_PATH_KEY)) or attributes.get(SOURCE_TYPE_KEY) == "file":
        return SourceType.FILE
    return SourceType.UNKNOWN


def predominant_source_type(records: Iterable[LogRecord]) -> SourceType:
    """Most frequent source type among records; file when there are none."""
    counts = Counter(record.source_type for record in records)
    best = SourceType.FILE
    best_count = 0
    for source_type in _PREDOMINANCE_ORDER:
        if counts[source_type] > best_count:
            best = source_type
            best_count = counts[source_type]
    return best
