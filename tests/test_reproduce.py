"""Tests for curl reconstruction and secret redaction."""

import json

import pytest

from livelog.models import EmbeddedRequest, FileDetails, HttpDetails, SourceType
from livelog.reproduce import (
    REDACTED,
    build_curl_command,
    is_sensitive_key,
    redact,
    redact_body,
    redact_path,
    reproduce_record,
)

SECRETS = ("hunter2", "sekrit-value", "tok-abc123", "Bearer xyz789")


def assert_no_secrets(text):
    for secret in SECRETS:
        assert secret not in text


class TestSensitiveKeys:
    @pytest.mark.parametrize("key", [
        "password", "Password", "user_password", "passwd", "client_secret",
        "access_token", "X-Api-Key", "api_key", "Authorization",
    ])
    def test_sensitive(self, key):
        assert is_sensitive_key(key)

    @pytest.mark.parametrize("key", ["username", "email", "page", 42])
    def test_not_sensitive(self, key):
        assert not is_sensitive_key(key)


class TestRedact:
    def test_nested(self):
        value = {
            "user": {"name": "bob", "password": "hunter2"},
            "items": [{"token": "tok-abc123"}, {"id": 1}],
        }
        assert redact(value) == {
            "user": {"name": "bob", "password": REDACTED},
            "items": [{"token": REDACTED}, {"id": 1}],
        }

    def test_input_not_mutated(self):
        value = {"password": "hunter2"}
        redact(value)
        assert value == {"password": "hunter2"}

    def test_path_query(self):
        path = redact_path("/reset?token=tok-abc123&page=2")
        assert "tok-abc123" not in path
        assert "page=2" in path
        assert path.startswith("/reset?")

    def test_path_without_query(self):
        assert redact_path("/api/users") == "/api/users"

    def test_json_string_body(self):
        body = redact_body(json.dumps({"auth": {"client_secret": "sekrit-value"}, "n": 1}))
        assert json.loads(body) == {"auth": {"client_secret": REDACTED}, "n": 1}

    def test_form_body(self):
        body = redact_body("username=bob&password=hunter2")
        assert "hunter2" not in body
        assert "username=bob" in body

    def test_plain_text_body(self):
        assert redact_body("just text") == "just text"

    def test_empty_body(self):
        assert redact_body(None) is None
        assert redact_body("") is None


class TestBuildCurlCommand:
    def test_simple_get_on_localhost(self):
        assert build_curl_command("GET", "/api/users") == "curl -X GET \\\n  http://localhost:3000/api/users"

    def test_remote_host_uses_https(self):
        command = build_curl_command("get", "/health", host="api.example.com")
        assert command.startswith("curl -X GET")
        assert command.endswith("https://api.example.com/health")

    def test_post_body_redacted(self):
        command = build_curl_command(
            "POST", "/login", body={"username": "bob", "password": "hunter2"},
        )
        assert_no_secrets(command)
        assert REDACTED in command
        assert "Content-Type: application/json" in command
        assert "-d " in command

    def test_get_ignores_body(self):
        command = build_curl_command("GET", "/search", body={"q": "x"})
        assert "-d " not in command

    def test_headers_redacted(self):
        command = build_curl_command(
            "GET", "/me", headers={"Authorization": "Bearer xyz789", "Accept": "application/json"},
        )
        assert_no_secrets(command)
        assert "Accept: application/json" in command

    def test_existing_content_type_kept(self):
        command = build_curl_command(
            "PUT", "/form", body="a=1", headers={"content-type": "application/x-www-form-urlencoded"},
        )
        assert "application/json" not in command

    def test_query_mapping_redacted(self):
        command = build_curl_command("GET", "/items?page=1", query={"apiKey": "sekrit-value", "q": "shoes"})
        assert_no_secrets(command)
        assert "page=1&" in command
        assert "q=shoes" in command

    def test_nested_secrets_never_leak(self):
        command = build_curl_command(
            "PATCH",
            "/settings?access_token=tok-abc123",
            host="api.example.com",
            body=json.dumps({"profile": {"old_password": "hunter2", "keys": [{"secret": "sekrit-value"}]}}),
            headers={"X-Auth-Token": "tok-abc123", "Authorization": "Bearer xyz789"},
            query={"nested": {"token": "tok-abc123"}},
        )
        assert_no_secrets(command)

    def test_relative_path_gets_slash(self):
        assert build_curl_command("GET", "status").endswith("http://localhost:3000/status")


class TestReproduceRecord:
    def test_http_record(self, make_record):
        record = make_record(
            source_type=SourceType.HTTP,
            details=HttpDetails(method="DELETE", path="/items/9", status_code=204),
        )
        assert reproduce_record(record) == "curl -X DELETE \\\n  http://localhost:3000/items/9"

    def test_http_record_host_wins_over_default(self, make_record):
        record = make_record(
            source_type=SourceType.HTTP,
            details=HttpDetails(method="GET", path="/", status_code=200, host="shop.example.com"),
        )
        assert "https://shop.example.com/" in reproduce_record(record, default_host="localhost:8080")

    def test_file_record_with_embedded_request(self, make_record):
        record = make_record(
            source_type=SourceType.FILE,
            details=FileDetails(file_path="/var/log/access.log",
                                embedded_request=EmbeddedRequest(method="GET", path="/health")),
        )
        assert reproduce_record(record, default_host="localhost:8080") == \
            "curl -X GET \\\n  http://localhost:8080/health"

    def test_other_records_have_no_command(self, make_record):
        assert reproduce_record(make_record()) is None
        record = make_record(source_type=SourceType.FILE, details=FileDetails(file_path="/x.log"))
        assert reproduce_record(record) is None
