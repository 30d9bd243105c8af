"""LogViewSession: the presentation boundary for one live log view.

Owns the buffer, normalizer and connector for a single view and keeps all
user-controlled state in an immutable ViewState that is replaced on every
update. All methods are meant to be called on the event loop that runs the
connector.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable

from livelog.auth import CredentialResolver
from livelog.buffer import LogBuffer
from livelog.classifier import predominant_source_type
from livelog.config import Config, resolve_timezone
from livelog.connector import StreamConnector
from livelog.filters import ViewQuery, apply_view, available_services
from livelog.models import ConnectionState, LogLevel, LogRecord, Service, SourceType
from livelog.normalizer import LogNormalizer
from livelog.services import ServiceDirectory, ServiceDirectoryError
from livelog.suggestions import Suggestion, suggest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    query: ViewQuery = field(default_factory=ViewQuery)
    expanded: frozenset[str] = frozenset()
    live: bool = True
    service: Service | None = None
    suggestions: tuple[Suggestion, ...] = ()


def toggle_member(members: frozenset, item) -> frozenset:
    return members - {item} if item in members else members | {item}


class LogViewSession:
    def __init__(
        self,
        config: Config,
        credentials: CredentialResolver,
        directory: ServiceDirectory | None = None,
        connect: Callable[..., Any] | None = None,
    ):
        self._config = config
        self._directory = directory
        self._buffer = LogBuffer(config.buffer_capacity)
        self._normalizer = LogNormalizer(tz=resolve_timezone(config.display_timezone))
        self._connector = StreamConnector(
            config.ws_base_url,
            credentials,
            on_event=self._ingest,
            on_state_change=self._notify_state,
            reconnect_attempts=config.reconnect_attempts,
            reconnect_base_delay=config.reconnect_base_delay,
            reconnect_max_delay=config.reconnect_max_delay,
            connect=connect,
        )
        self._state = ViewState()
        self._services: list[Service] = []
        self._record_listeners: list[Callable[[LogRecord], None]] = []
        self._state_listeners: list[Callable[[ConnectionState], None]] = []

    # -- exposed state ---------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def buffer(self) -> LogBuffer:
        return self._buffer

    @property
    def connector(self) -> StreamConnector:
        return self._connector

    @property
    def connection_state(self) -> ConnectionState:
        return self._connector.state

    @property
    def suggestions(self) -> tuple[Suggestion, ...]:
        return self._state.suggestions

    @property
    def services(self) -> list[Service]:
        return list(self._services)

    @property
    def needs_service_selection(self) -> bool:
        """True until a known service has been selected."""
        return self._state.service is None

    def visible_records(self) -> list[LogRecord]:
        """Buffer contents after the current filters and sort."""
        return apply_view(self._buffer.snapshot(), self._state.query)

    def available_services(self) -> list[str]:
        return available_services(self._buffer.snapshot())

    def predominant_source_type(self) -> SourceType:
        return predominant_source_type(self.visible_records())

    def find_record(self, record_id: str) -> LogRecord | None:
        for record in self._buffer.snapshot():
            if record.id == record_id:
                return record
        return None

    def is_expanded(self, record_id: str) -> bool:
        return record_id in self._state.expanded

    def add_listener(self, callback: Callable[[LogRecord], None]) -> None:
        """Call `callback` with every record inserted into the buffer."""
        self._record_listeners.append(callback)

    def add_state_listener(self, callback: Callable[[ConnectionState], None]) -> None:
        self._state_listeners.append(callback)

    # -- service gate ----------------------------------------------------

    async def load_services(self) -> list[Service]:
        """Populate the service list and honour a preconfigured service id."""
        if self._directory is None:
            return []
        try:
            services = await asyncio.to_thread(self._directory.list_services)
        except ServiceDirectoryError as e:
            logger.error("Failed to fetch services: %s", e)
            return []
        self._services = services

        preselected = self._config.service_id
        if preselected and self._state.service is None:
            if not self.select_service(preselected):
                logger.warning("Configured service %s not found, selection required", preselected)
        return list(services)

    # -- controls --------------------------------------------------------

    def select_service(self, service_id: str) -> bool:
        """Switch the stream to another service. Clears the buffer."""
        service = next((s for s in self._services if s.id == service_id), None)
        if service is None:
            logger.warning("Unknown service id %s", service_id)
            return False
        if self._state.service is not None and self._state.service.id == service.id:
            return True
        logger.info("Selected service %s (%s)", service.name, service.id)
        self._buffer.clear()
        self._state = replace(self._state, service=service, expanded=frozenset(), suggestions=())
        self._sync_connection()
        return True

    def set_live(self, live: bool) -> None:
        self._state = replace(self._state, live=bool(live))
        self._sync_connection()

    def toggle_live(self) -> bool:
        self.set_live(not self._state.live)
        return self._state.live

    def set_query(self, text: str) -> None:
        self._replace_query(text=text or "")
        self._refresh_suggestions()

    def set_level_filter(self, levels: Iterable[LogLevel]) -> None:
        self._replace_query(levels=frozenset(levels))

    def toggle_level(self, level: LogLevel) -> None:
        self._replace_query(levels=toggle_member(self._state.query.levels, level))

    def set_service_filter(self, names: Iterable[str]) -> None:
        self._replace_query(services=frozenset(names))

    def toggle_service_filter(self, name: str) -> None:
        self._replace_query(services=toggle_member(self._state.query.services, name))

    def set_sort(self, sort_field: str) -> None:
        self._replace_query(sort=self._state.query.sort.toggle(sort_field))

    def clear_buffer(self) -> None:
        self._buffer.clear()
        self._state = replace(self._state, expanded=frozenset())
        self._refresh_suggestions()

    def toggle_row_expansion(self, record_id: str) -> bool:
        """Expand or collapse a row. Returns the new expansion state."""
        self._state = replace(self._state, expanded=toggle_member(self._state.expanded, record_id))
        return record_id in self._state.expanded

    async def close(self) -> None:
        await self._connector.close()

    # -- internals -------------------------------------------------------

    def _replace_query(self, **changes) -> None:
        self._state = replace(self._state, query=replace(self._state.query, **changes))

    def _refresh_suggestions(self) -> None:
        found = suggest(self._buffer.snapshot(), self._state.query.text, self._config.suggestion_limit)
        self._state = replace(self._state, suggestions=tuple(found))

    def _sync_connection(self) -> None:
        service_id = self._state.service.id if self._state.service else None
        self._connector.update(service_id, self._state.live)

    def _ingest(self, payload: dict) -> None:
        record = self._normalizer.normalize(payload)
        self._buffer.add(record)
        if self._state.query.text:
            self._refresh_suggestions()
        for callback in self._record_listeners:
            callback(record)

    def _notify_state(self, state: ConnectionState) -> None:
        for callback in self._state_listeners:
            callback(state)
