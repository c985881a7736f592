"""
Per-request id and timing.

Every response carries ``X-Request-ID`` (echoed from the client when sent)
and ``X-Request-Duration-Ms``.  ``g.request_id`` and ``g.actor`` are picked
up by the logging filter so service log lines can be tied to a request.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

_QUIET_PATHS = frozenset({"/api/v1/health"})


def init_request_timing(app: Flask):
    slow_ms = app.config.get("SLOW_REQUEST_MS", 1000)

    @app.before_request
    def _begin():
        g.request_started = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        g.actor = request.headers.get("X-User") or None

    @app.after_request
    def _finish(response):
        started = g.get("request_started")
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"
        response.headers["X-Request-ID"] = g.request_id
        if request.path in _QUIET_PATHS:
            return response

        if elapsed > slow_ms:
            level = logging.WARNING
        elif response.status_code >= 500:
            level = logging.ERROR
        else:
            level = logging.DEBUG
        logger.log(
            level, "%s %s -> %d in %.0fms", request.method, request.path, response.status_code, elapsed,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": round(elapsed, 1),
            },
        )
        return response
