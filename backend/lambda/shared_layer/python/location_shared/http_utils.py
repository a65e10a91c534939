"""location_shared.http_utils — API Gateway proxy response helpers.

Snowflake reads the response body as ``{"data": [...]}`` on success and
surfaces ``{"error": "..."}`` to the query on failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from location_shared.errors import MISSING_FUNCTION_NAME, ErrorKind, RequestError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An internal error occurred, please try again later."

RESPONSE_HEADERS = {"Content-Type": "application/json"}


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    """Build an API Gateway proxy response; ``body`` may be pre-encoded."""
    return {
        "statusCode": status_code,
        "headers": dict(RESPONSE_HEADERS),
        "body": body if isinstance(body, str) else json.dumps(body, default=str),
    }


def _error(status_code: int, message: str) -> Dict[str, Any]:
    """Build an error response in the external-function error shape."""
    if status_code >= 500:
        logger.error(f"[ERROR] Responding {status_code}: {message}")
    else:
        logger.warning(f"[WARNING] Responding {status_code}: {message}")
    return _response(status_code, {"error": message})


def _status_for(err: RequestError) -> int:
    """Client input errors are 4xx; configuration and backend errors are 500."""
    if err.kind is ErrorKind.CLIENT_INPUT:
        return 401 if err.code == MISSING_FUNCTION_NAME else 400
    return 500


def _request_error(err: RequestError) -> Dict[str, Any]:
    return _error(_status_for(err), err.message)


def _safe_message(exc: BaseException) -> str:
    """Message to show the caller for an unexpected exception."""
    message = str(exc).strip()
    return message or GENERIC_ERROR_MESSAGE
