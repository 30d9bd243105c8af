"""Tests for LogNormalizer."""

from datetime import datetime, timezone

import pytest

from livelog.models import DockerDetails, HttpDetails, JournaldDetails, LogLevel, SourceType
from livelog.normalizer import LogNormalizer


@pytest.fixture
def normalizer():
    return LogNormalizer(tz=timezone.utc)


class TestNormalizeHttp:
    def test_http_event(self, normalizer, http_event):
        record = normalizer.normalize(http_event)
        assert record.id == "evt-1"
        assert record.source_type is SourceType.HTTP
        assert record.source_name == "api-gateway"
        assert record.level is LogLevel.WARN
        assert record.message == "GET /api/users 200"
        assert record.timestamp == datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=timezone.utc)
        assert record.display_timestamp == "22:13:20.123"
        assert isinstance(record.details, HttpDetails)
        assert record.method == "GET"
        assert record.client_ip == "10.0.0.7"

    def test_incomplete_http_falls_back_to_unknown(self, normalizer):
        record = normalizer.normalize({
            "serviceName": "api",
            "logAttributes": {"http.method": "GET"},
        })
        assert record.source_type is SourceType.UNKNOWN
        assert record.source_name == "api"
        assert record.details is None


class TestNormalizeOtherSources:
    def test_docker_uses_container_name(self, normalizer):
        record = normalizer.normalize({
            "service": "orders",
            "logAttributes": {"container.name": "orders-7c9", "container.image": "orders:2.1"},
        })
        assert record.source_type is SourceType.DOCKER
        assert record.source_name == "orders-7c9"
        assert isinstance(record.details, DockerDetails)

    def test_docker_without_name_uses_service(self, normalizer):
        record = normalizer.normalize({"service": "orders", "logAttributes": {"container.id": "abc"}})
        assert record.source_name == "orders"

    def test_journald_uses_unit(self, normalizer):
        record = normalizer.normalize({"logAttributes": {"systemd.unit": "nginx.service"}})
        assert record.source_type is SourceType.JOURNALD
        assert record.source_name == "nginx.service"
        assert isinstance(record.details, JournaldDetails)

    def test_file_splits_path(self, normalizer):
        record = normalizer.normalize({"log_attributes": {"file_path": "/var/log/app/server.log"}})
        assert record.source_type is SourceType.FILE
        assert record.source_name == "server.log"
        assert record.directory_path == "/var/log/app"

    def test_file_without_separator(self, normalizer):
        record = normalizer.normalize({"logAttributes": {"file_path": "server.log"}})
        assert record.source_name == "server.log"
        assert record.directory_path is None

    def test_file_marker_without_path(self, normalizer):
        record = normalizer.normalize({"logAttributes": {"source_type": "file"}})
        assert record.source_type is SourceType.FILE
        assert record.source_name == "unknown"

    def test_unknown_without_service(self, normalizer):
        record = normalizer.normalize({"body": "hi"})
        assert record.source_type is SourceType.UNKNOWN
        assert record.source_name == "unknown"


class TestNormalizeFields:
    @pytest.mark.parametrize("raw,expected", [
        ({"severityText": "error"}, LogLevel.ERROR),
        ({"severity_text": "Debug"}, LogLevel.DEBUG),
        ({"level": "warning"}, LogLevel.WARN),
        ({"level": "critical"}, LogLevel.ERROR),
        ({"level": "verbose"}, LogLevel.INFO),
        ({}, LogLevel.INFO),
    ])
    def test_level(self, normalizer, raw, expected):
        assert normalizer.normalize(raw).level is expected

    def test_message_fallbacks(self, normalizer):
        assert normalizer.normalize({"message": "m"}).message == "m"
        assert normalizer.normalize({"Body": "B"}).message == "B"
        assert normalizer.normalize({"body": 42}).message == "42"
        assert normalizer.normalize({}).message == ""

    def test_missing_timestamp_uses_now(self, normalizer):
        fixed = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        record = normalizer.normalize({"body": "x"}, now=fixed)
        assert record.timestamp == fixed
        assert record.display_timestamp == "12:00:00.000"

    def test_generated_ids_are_unique(self, normalizer):
        ids = {normalizer.normalize({}).id for _ in range(100)}
        assert len(ids) == 100
        assert all(i.startswith("log-") for i in ids)

    def test_non_mapping_input(self, normalizer):
        record = normalizer.normalize(["not", "an", "object"])
        assert record.source_type is SourceType.UNKNOWN
        assert record.level is LogLevel.INFO
        assert record.message == ""

    def test_non_mapping_attributes_ignored(self, normalizer):
        record = normalizer.normalize({"logAttributes": "oops"})
        assert dict(record.attributes) == {}

    def test_attributes_are_read_only(self, normalizer, http_event):
        record = normalizer.normalize(http_event)
        with pytest.raises(TypeError):
            record.attributes["http.method"] = "POST"

    def test_non_ascii_digit_status_does_not_raise(self, normalizer):
        record = normalizer.normalize({
            "logAttributes": {"http.method": "GET", "http.path": "/", "http.status_code": "²"},
        })
        assert record.source_type is SourceType.UNKNOWN
