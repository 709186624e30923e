"""Building HTTP responses in the shapes the API returns."""

from __future__ import annotations

import json
import socket
from typing import Any

from werkzeug.wrappers import Request, Response

from .settings import Settings
from .structs import RequestInfo, to_json

ENCODE_FAILURE_BODY = '{"error":true,"message":"could not encode JSON","result":{}}'
INVALID_REQUEST_BODY = '{"error":true,"message":"invalid request type","result":{}}'
_TEXT_TYPE = "text/plain; charset=utf-8"


def _apply_cors(settings: Settings, response: Response) -> Response:
    origin = settings.get_str("general.access-control-allow-origin")
    if origin:
        response.headers["Access-Control-Allow-Origin"] = origin
    return response


def make_request_info(request: Request) -> RequestInfo:
    """Describe the request path and the host that served it."""
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = ""
    return RequestInfo(url=request.path, host=hostname)


def json_response(settings: Settings, status_code: int, payload: Any) -> Response:
    """Encode payload as JSON; a payload that cannot be encoded gives a 500."""
    try:
        body = json.dumps(to_json(payload), separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError):
        status_code, body = 500, ENCODE_FAILURE_BODY
    response = Response(body, status=status_code, content_type="application/json")
    return _apply_cors(settings, response)


def error_response(settings: Settings, request: Request, status_code: int, message: str) -> Response:
    return json_response(
        settings,
        status_code,
        {"error": True, "message": message, "request": make_request_info(request)},
    )


def text_response(settings: Settings, status_code: int, text: str) -> Response:
    return _apply_cors(settings, Response(text, status=status_code, content_type=_TEXT_TYPE))


def not_found_response() -> Response:
    """The reply to any URL that has no route."""
    response = Response(INVALID_REQUEST_BODY + "\n", status=404, content_type=_TEXT_TYPE)
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response