# SPDX-License-Identifier: Apache-2.0

"""
Tests for request ids, span attributes and request completion logging.
"""

import logging
from unittest.mock import MagicMock

from opentelemetry.trace import SpanContext

from rescue_api.observability import middleware

MIDDLEWARE_LOGGER = "rescue_api.observability.middleware"


def completed_requests(caplog):
    return [
        record.extra_fields
        for record in caplog.records
        if record.name == MIDDLEWARE_LOGGER and record.getMessage() == "HTTP request completed"
    ]


class TestRequestLogging:
    """Test the request completion log line."""

    def test_authenticated_request_logs_actor(self, client, auth_headers, accounts, caplog):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            response = client.get('/api/reports/my-reports', headers=auth_headers("public"))

        assert response.status_code == 200
        entry = completed_requests(caplog)[-1]
        assert entry["actor_id"] == accounts["public"].id
        assert entry["actor_role"] == "public"
        assert entry["route"] == "/api/reports/my-reports"
        assert entry["status_code"] == 200

    def test_anonymous_request_has_no_actor(self, client, caplog):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            client.get('/api/dogs')

        entry = completed_requests(caplog)[-1]
        assert entry["actor_id"] is None
        assert entry["actor_role"] is None

    def test_route_template_logged_for_path_parameters(self, client, auth_headers, caplog):
        with caplog.at_level(logging.INFO, logger=MIDDLEWARE_LOGGER):
            client.get('/api/dogs/missing-dog', headers=auth_headers("ngo"))

        entry = completed_requests(caplog)[-1]
        assert entry["route"] == "/api/dogs/<dog_id>"
        assert entry["path"] == "/api/dogs/missing-dog"
        assert entry["actor_role"] == "ngo_admin"


class TestRequestIds:
    """Test X-Request-Id handling."""

    def test_caller_request_id_echoed(self, client):
        response = client.get('/api/healthz', headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, client):
        first = client.get('/api/healthz').headers["X-Request-ID"]
        second = client.get('/api/healthz').headers["X-Request-ID"]

        assert len(first) == 32
        assert first != second


class TestSpanAttributes:
    """Test attributes recorded on the active request span."""

    def test_actor_and_route_on_span(self, client, auth_headers, accounts, monkeypatch):
        span = MagicMock()
        span.is_recording.return_value = True
        span.get_span_context.return_value = SpanContext(trace_id=0xABC, span_id=0x1, is_remote=False)
        monkeypatch.setattr(middleware.trace, "get_current_span", lambda *args, **kwargs: span)

        response = client.get('/api/profile', headers=auth_headers("vet"))

        recorded = {}
        for call in span.set_attributes.call_args_list:
            recorded.update(call.args[0])
        assert recorded["actor.id"] == accounts["vet"].id
        assert recorded["actor.role"] == "veterinarian"
        assert recorded["http.route"] == "/api/profile"
        assert recorded["http.status_code"] == 200
        assert response.headers["X-Trace-Id"] == format(0xABC, "032x")
