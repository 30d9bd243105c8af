"""StreamConnector: owns the live WebSocket connection for one log view.

State machine:
    disconnected -> connecting -> open -> (closing) -> disconnected

The connector is driven only by update(service_id, live). Any change of
either value tears the current connection down before a new one may open;
the new attempt waits for the old one to finish closing, so a view never
holds two connections. Everything runs on one asyncio event loop.
"""

import asyncio
import json
import logging
import random
import re
from typing import Any, Callable
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import WebSocketException

from livelog.auth import CredentialResolver
from livelog.models import ConnectionState

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/logs/stream"

_TOKEN_RE = re.compile(r"token=[^&]+")


def build_stream_url(ws_base_url: str, service_id: str, token: str) -> str:
    query = urlencode({"service": service_id, "token": token})
    return f"{ws_base_url.rstrip('/')}{STREAM_PATH}?{query}"


def mask_token(url: str) -> str:
    return _TOKEN_RE.sub("token=***", url)


class StreamConnector:
    def __init__(
        self,
        ws_base_url: str,
        credentials: CredentialResolver,
        on_event: Callable[[dict], None],
        on_state_change: Callable[[ConnectionState], None] | None = None,
        reconnect_attempts: int = 0,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 60.0,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self._ws_base_url = ws_base_url
        self._credentials = credentials
        self._on_event = on_event
        self._on_state_change = on_state_change
        self._reconnect_attempts = reconnect_attempts
        self._reconnect_base_delay = reconnect_base_delay
        self._reconnect_max_delay = reconnect_max_delay
        self._connect = connect or ws_connect

        self._state = ConnectionState.DISCONNECTED
        self._target: tuple[str | None, bool] = (None, False)
        self._task: asyncio.Task | None = None
        self._closing: set[asyncio.Task] = set()
        self._generation = 0
        self.messages_received = 0
        self.frames_dropped = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info("Stream connection %s -> %s", previous.value, state.value)
        if self._on_state_change is not None:
            self._on_state_change(state)

    def update(self, service_id: str | None, live: bool) -> None:
        """Apply the selected service and live flag.

        Unchanged inputs are a no-op, so a connection that dropped is only
        re-established by the next real change.
        """
        target = (service_id or None, bool(live))
        if target == self._target:
            return
        self._target = target

        closing = self._teardown()
        if target[0] is not None and target[1]:
            self._task = asyncio.get_running_loop().create_task(
                self._run(self._generation, target[0], closing)
            )

    async def close(self) -> None:
        """Tear down and wait until the connection has fully closed."""
        self._target = (None, False)
        closing = self._teardown()
        if closing:
            await asyncio.wait(closing)

    async def wait_idle(self) -> None:
        """Wait until no connection is running or closing."""
        while True:
            pending = {t for t in self._closing if not t.done()}
            if self._task is not None and not self._task.done():
                pending.add(self._task)
            if not pending:
                return
            await asyncio.wait(pending)

    def _teardown(self) -> set[asyncio.Task]:
        """Cancel the current connection task. Returns the tasks still closing."""
        self._generation += 1
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            self._closing.add(task)
        self._closing = {t for t in self._closing if not t.done()}
        if self._closing:
            self._set_state(ConnectionState.CLOSING)
            return set(self._closing)
        self._set_state(ConnectionState.DISCONNECTED)
        return set()

    async def _run(self, generation: int, service_id: str, previous: set[asyncio.Task]) -> None:
        try:
            if previous:
                await asyncio.wait(previous)

            attempt = 0
            while True:
                self._set_state(ConnectionState.CONNECTING)
                token = await self._credentials.resolve()
                if not token:
                    logger.warning("Not connecting to service %s: no credential", service_id)
                    return

                opened = await self._stream(build_stream_url(self._ws_base_url, service_id, token))
                if opened:
                    attempt = 0
                if attempt >= self._reconnect_attempts:
                    return

                attempt += 1
                delay = min(self._reconnect_base_delay * (2 ** (attempt - 1)), self._reconnect_max_delay)
                delay += random.uniform(0, delay * 0.3)
                self._set_state(ConnectionState.DISCONNECTED)
                logger.info("Reconnecting in %.1fs (attempt %d/%d)", delay, attempt, self._reconnect_attempts)
                await asyncio.sleep(delay)
        finally:
            pending = [t for t in previous if not t.done()]
            if pending:
                # Cancelled while a predecessor was still closing
                await asyncio.wait(pending)
            # A successor task owns the state once it exists
            if self._generation == generation or self._task is None:
                self._set_state(ConnectionState.DISCONNECTED)

    async def _stream(self, url: str) -> bool:
        """Receive frames until the connection ends. Returns True if it reached open."""
        opened = False
        logger.info("Connecting to %s", mask_token(url))
        try:
            async with self._connect(url, open_timeout=None) as websocket:
                opened = True
                self._set_state(ConnectionState.OPEN)
                async for message in websocket:
                    self._handle_message(message)
            logger.info("Stream closed after %d message(s)", self.messages_received)
        except (WebSocketException, OSError) as e:
            logger.warning("Stream connection error: %s", e)
        return opened

    def _handle_message(self, message: str | bytes) -> None:
        """Parse one frame. Malformed frames are dropped, never fatal."""
        self.messages_received += 1
        try:
            if isinstance(message, (bytes, bytearray)):
                message = message.decode("utf-8")
            payload = json.loads(message)
        except (ValueError, RecursionError) as e:
            self.frames_dropped += 1
            logger.warning("Dropping malformed frame #%d: %s", self.messages_received, e)
            return

        if not isinstance(payload, dict):
            self.frames_dropped += 1
            logger.warning("Dropping non-object frame #%d", self.messages_received)
            return

        try:
            self._on_event(payload)
        except Exception:
            self.frames_dropped += 1
            logger.exception("Failed to handle frame #%d, dropping it", self.messages_received)
