import asyncio
from datetime import datetime, timezone

import pytest
import requests

from livelog.models import LogLevel, LogRecord, SourceType
from livelog.timestamps import format_display_time


def build_record(**overrides) -> LogRecord:
    """LogRecord with sensible defaults; any field can be overridden."""
    timestamp = overrides.pop("timestamp", datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
    defaults = dict(
        id="log-1",
        timestamp=timestamp,
        display_timestamp=format_display_time(timestamp),
        level=LogLevel.INFO,
        source_type=SourceType.UNKNOWN,
        source_name="api",
        message="hello",
    )
    defaults.update(overrides)
    return LogRecord(**defaults)


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def http_event():
    return {
        "id": "evt-1",
        "timeUnixNano": "1700000000123000000",
        "severityText": "warning",
        "body": "GET /api/users 200",
        "serviceName": "api-gateway",
        "logAttributes": {
            "http.method": "get",
            "http.path": "/api/users",
            "http.status_code": 200,
            "http.response_time_ms": 12.5,
            "http.client_ip": "10.0.0.7",
            "container.name": "gateway-1",
        },
    }


class FakeWebSocket:
    """Async-iterable stand-in for a client connection."""

    def __init__(self, frames, hold_open=False):
        self._frames = list(frames)
        self._hold_open = hold_open

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self._frames:
            yield frame
        if self._hold_open:
            # Stay connected until cancelled
            await asyncio.Event().wait()


class FakeConnect:
    """Replacement for websockets' connect() that tracks concurrent connections."""

    def __init__(self, frames=(), hold_open=False, fail=False):
        self.frames = list(frames)
        self.hold_open = hold_open
        self.fail = fail
        self.urls = []
        self.kwargs = []
        self.active = 0
        self.max_active = 0

    def __call__(self, url, **kwargs):
        self.urls.append(url)
        self.kwargs.append(kwargs)
        return _FakeConnection(self)


class _FakeConnection:
    def __init__(self, owner: FakeConnect):
        self._owner = owner

    async def __aenter__(self):
        if self._owner.fail:
            raise OSError("connection refused")
        self._owner.active += 1
        self._owner.max_active = max(self._owner.max_active, self._owner.active)
        return FakeWebSocket(self._owner.frames, self._owner.hold_open)

    async def __aexit__(self, exc_type, exc, tb):
        # Closing handshake yields to the loop once
        await asyncio.sleep(0)
        self._owner.active -= 1
        return False


async def wait_for(predicate, attempts=200):
    """Yield to the loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()


class FakeResponse:
    def __init__(self, payload=None, status=200, invalid_json=False):
        self._payload = payload
        self.status_code = status
        self._invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._invalid_json:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response
