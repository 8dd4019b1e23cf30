# SPDX-License-Identifier: Apache-2.0

"""
Request observability for the rescue API.

Every request gets a request id (taken from X-Request-ID when the caller
sends one), and its completion is logged and recorded on the active span
together with the matched route and the authenticated actor, so a rescue
or adoption action can be traced back to the account that performed it.
"""

import logging
import time
import uuid
from typing import Any, Dict

from flask import Flask, Response, g, request
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

from ..models.enums import AccountRole

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = 'X-Request-ID'
TRACE_ID_HEADER = 'X-Trace-Id'


def _actor_attributes() -> Dict[str, Any]:
    """Actor fields for the finished request; anonymous callers get none."""
    actor = g.get('user_context')
    if actor is None:
        return {}
    return {"actor.id": actor.account_id, "actor.role": AccountRole(actor.role).value}


def _route_attributes() -> Dict[str, Any]:
    rule = request.url_rule.rule if request.url_rule is not None else None
    return {
        "http.route": rule or request.path,
        "http.endpoint": request.endpoint or ""
    }


def add_observability_middleware(app: Flask) -> None:
    """Install request ids, span attributes and request completion logging."""

    if app.config.get('OTEL_ENABLED'):
        FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def start_request():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        g.trace_id = None

        span = trace.get_current_span()
        if span.is_recording():
            g.trace_id = format(span.get_span_context().trace_id, "032x")
            span.set_attributes({
                "request.id": g.request_id,
                "http.user_agent": request.headers.get("User-Agent", ""),
                "http.remote_addr": request.remote_addr or ""
            })

    @app.after_request
    def finish_request(response: Response) -> Response:
        duration_ms = round((time.perf_counter() - g.get('request_started', time.perf_counter())) * 1000, 2)
        attributes = {**_route_attributes(), **_actor_attributes()}

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attributes({
                **attributes,
                "http.status_code": response.status_code,
                "http.duration_ms": duration_ms
            })

        logger.info(
            "HTTP request completed",
            extra={
                "extra_fields": {
                    "method": request.method,
                    "path": request.path,
                    "route": attributes["http.route"],
                    "endpoint": attributes["http.endpoint"],
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "actor_id": attributes.get("actor.id"),
                    "actor_role": attributes.get("actor.role"),
                    "request_id": g.get('request_id'),
                    "trace_id": g.get('trace_id')
                }
            }
        )

        if g.get('request_id'):
            response.headers[REQUEST_ID_HEADER] = g.request_id
        if g.get('trace_id'):
            response.headers[TRACE_ID_HEADER] = g.trace_id
        return response
