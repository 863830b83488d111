"""JSON responses and response middleware."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from werkzeug.wrappers import Response

logger = logging.getLogger(__name__)

_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _encode(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def respond_with_json(code: int, payload: Any) -> Response:
    """Build a response with the payload serialised as compact JSON."""
    try:
        body = json.dumps(
            payload, default=_encode, separators=(",", ":"), ensure_ascii=False
        )
    except (TypeError, ValueError) as exc:
        logger.error("Error marshalling JSON: %s", exc)
        return Response(b"", status=500, mimetype="application/json")
    for char, escape in _HTML_ESCAPES.items():
        body = body.replace(char, escape)
    return Response(body.encode("utf-8"), status=code, mimetype="application/json")


def respond_with_error(code: int, msg: str, err: BaseException | None = None) -> Response:
    """Log the error and build a JSON error response."""
    if err is not None:
        logger.error("%s", err)
    if code > 499:
        logger.error("Responding with 5XX error: %s", msg)
    return respond_with_json(code, {"error": msg})


def no_cache_middleware(app):
    """Wrap a WSGI app so its responses carry 'Cache-Control: no-store'."""

    def wrapped(environ, start_response):
        def _start_response(status, headers, exc_info=None):
            if not any(name.lower() == "cache-control" for name, _ in headers):
                headers = [*headers, ("Cache-Control", "no-store")]
            if exc_info is None:
                return start_response(status, headers)
            return start_response(status, headers, exc_info)

        return app(environ, _start_response)

    return wrapped