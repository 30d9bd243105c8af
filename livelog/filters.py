"""Filter predicates and sorting for the visible record list."""

from dataclasses import dataclass, field
from typing import Callable, Iterable

from livelog.models import LogLevel, LogRecord

SORT_FIELDS = ("timestamp", "level", "source", "message")

ASC = "asc"
DESC = "desc"

ALL_LEVELS = frozenset(LogLevel)


@dataclass(frozen=True)
class SortSpec:
    field: str = "timestamp"
    direction: str | None = DESC   # None = insertion order

    def toggle(self, field: str) -> "SortSpec":
        """Selecting the same field cycles desc -> asc -> unsorted -> desc."""
        if field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field: {field}")
        if field != self.field:
            return SortSpec(field, DESC)
        if self.direction == DESC:
            return SortSpec(field, ASC)
        if self.direction == ASC:
            return SortSpec(field, None)
        return SortSpec(field, DESC)


@dataclass(frozen=True)
class ViewQuery:
    text: str = ""
    levels: frozenset[LogLevel] = ALL_LEVELS
    services: frozenset[str] = frozenset()
    sort: SortSpec = field(default_factory=SortSpec)


def matches_text(record: LogRecord, text: str) -> bool:
    """Case-insensitive substring over message, source name and client IP."""
    if not text:
        return True
    needle = text.lower()
    return (
        needle in record.message.lower()
        or needle in record.source_name.lower()
        or needle in record.client_ip.lower()
    )


def matches_level(record: LogRecord, levels: frozenset[LogLevel]) -> bool:
    return record.level in levels


def matches_service(record: LogRecord, services: frozenset[str]) -> bool:
    """An empty selection places no restriction."""
    if not services:
        return True
    return record.source_name in services


_SORT_KEYS: dict[str, Callable[[LogRecord], object]] = {
    "timestamp": lambda r: r.timestamp,
    "level": lambda r: r.level.rank,
    "source": lambda r: r.source_name.casefold(),
    "message": lambda r: r.message.casefold(),
}


def apply_view(records: Iterable[LogRecord], query: ViewQuery) -> list[LogRecord]:
    """Filter (text AND level AND service) then sort. Sorting is stable."""
    result = [
        r for r in records
        if matches_text(r, query.text)
        and matches_level(r, query.levels)
        and matches_service(r, query.services)
    ]
    if query.sort.direction is None:
        return result
    return sorted(result, key=_SORT_KEYS[query.sort.field], reverse=query.sort.direction == DESC)


def available_services(records: Iterable[LogRecord]) -> list[str]:
    """Distinct source names, sorted, for the service filter."""
    return sorted({r.source_name for r in records})
