"""
Unit tests for the access log.
"""

import json
import logging

from minihttp.access_log import RequestLog, build_entry, log_request
from minihttp.http.request import HTTPRequest, parse_request
from minihttp.http.response import ok


def make_entry(**overrides) -> RequestLog:
    fields = dict(
        request_id="abcd1234",
        method="GET",
        path="/",
        client_ip="127.0.0.1",
        user_agent="pytest",
        status_code=200,
        content_length=11,
        duration_ms=1.234,
        timestamp="19/Oct/2026:10:00:00 +0000",
    )
    fields.update(overrides)
    return RequestLog(**fields)


class TestRequestLog:
    """Tests for RequestLog formatting."""

    def test_to_text(self):
        assert make_entry().to_text() == (
            '127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "GET /" 200 11 1.23ms'
        )

    def test_to_dict_rounds_duration(self):
        data = make_entry().to_dict()

        assert data["duration_ms"] == 1.23
        assert data["request_id"] == "abcd1234"
        assert data["status_code"] == 200


class TestLogRequest:
    """Tests for building and emitting entries."""

    def test_build_entry(self):
        request = parse_request(
            b"GET /route/1 HTTP/1.1\r\nUser-Agent: curl\r\n\r\n",
            ("10.0.0.1", 5000),
        )
        entry = build_entry("id1", request, ok("Hello, 1"), 2.0)

        assert entry.method == "GET"
        assert entry.path == "/route/1"
        assert entry.client_ip == "10.0.0.1"
        assert entry.user_agent == "curl"
        assert entry.content_length == 8

    def test_unsupported_method_and_missing_fields(self):
        request = parse_request(b"BREW /pot HTTP/1.1\r\n\r\n")
        entry = build_entry("id2", request, ok(), 0.5)

        assert entry.method == "UNSUPPORTED"
        assert entry.client_ip == "-"
        assert entry.user_agent == "-"

    def test_text_format(self, caplog):
        with caplog.at_level(logging.INFO, logger="minihttp.access"):
            log_request("id3", HTTPRequest(path="/x"), ok("hi"), 1.0)

        assert '"GET /x" 200 2' in caplog.text

    def test_json_format(self, caplog):
        with caplog.at_level(logging.INFO, logger="minihttp.access"):
            log_request("id4", HTTPRequest(path="/x"), ok("hi"), 1.0, log_format="json")

        record = caplog.records[-1]
        data = json.loads(record.getMessage())
        assert data["path"] == "/x"
        assert data["request_id"] == "id4"
