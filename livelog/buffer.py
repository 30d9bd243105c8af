import collections
import logging

from livelog.models import LogRecord

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000


class LogBuffer:
    """Bounded, newest-first working set of normalized records.

    Backed by a deque with maxlen, so prepending past capacity drops the
    oldest record at the tail regardless of ingestion rate.
    """

    def __init__(self, capacity=DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Buffer capacity must be positive, got {capacity}")
        self._records = collections.deque(maxlen=capacity)
        self._total_count = 0
        self._evicted_count = 0

    def add(self, record: LogRecord):
        """Prepend a record, evicting the oldest one when full."""
        if len(self._records) == self._records.maxlen:
            self._evicted_count += 1
        self._records.appendleft(record)
        self._total_count += 1

    def snapshot(self) -> tuple[LogRecord, ...]:
        """All records, newest first."""
        return tuple(self._records)

    def clear(self):
        """Drop all records. Lifetime counters are kept."""
        count = len(self._records)
        self._records.clear()
        logger.debug("Cleared %d records from buffer", count)

    @property
    def capacity(self) -> int:
        return self._records.maxlen

    @property
    def total_count(self) -> int:
        """Total number of records ever added."""
        return self._total_count

    @property
    def evicted_count(self) -> int:
        return self._evicted_count

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(tuple(self._records))
