"""Search-as-you-type suggestions derived from the current buffer."""

from dataclasses import dataclass
from typing import Iterable

from livelog.models import LogRecord

DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class Suggestion:
    text: str
    column: str
    record_id: str


def _candidates(record: LogRecord) -> tuple[tuple[str, str], ...]:
    return (
        (record.message, "Message"),
        (record.source_name, "Source"),
        (record.client_ip, "IP Address"),
        (record.method, "Method"),
    )


def suggest(records: Iterable[LogRecord], query: str, limit: int = DEFAULT_LIMIT) -> list[Suggestion]:
    """Up to `limit` (text, column) matches in buffer order, deduplicated.

    Recomputed from scratch on each call; the buffer is small enough that no
    incremental index is kept.
    """
    if not query or limit <= 0:
        return []
    needle = query.lower()
    seen: set[tuple[str, str]] = set()
    results: list[Suggestion] = []

    for record in records:
        for text, column in _candidates(record):
            if not text or needle not in text.lower():
                continue
            key = (text, column)
            if key in seen:
                continue
            seen.add(key)
            results.append(Suggestion(text=text, column=column, record_id=record.id))
            if len(results) >= limit:
                return results
    return results
