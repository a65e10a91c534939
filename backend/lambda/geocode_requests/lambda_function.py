"""geocode_requests/lambda_function.py

Snowflake external-function endpoint for Amazon Location Service.

Snowflake calls API Gateway with a batch of rows and the name of the external
function being evaluated in the ``sf-external-function-name`` header. The
name picks the operation (``geocode*`` / ``reverse*``) and the data provider
(``*here`` / ``*esri`` / ``*grab``); the provider's place index comes from
AppConfig.

Request body:
    {"data": [[row_id, address], ...]}                 geocode
    {"data": [[row_id, longitude, latitude], ...]}     reverse geocode

Response body:
    200 {"data": [[row_id, longitude, latitude], ...]}   (-1, -1 when no match)
    200 {"data": [[row_id, label], ...]}                 ("N/A" when no match)
    400 / 401 / 500 {"error": "..."}

Environment variables:
    APPCONFIG_APPLICATION_ID            required
    APPCONFIG_ENVIRONMENT_ID            required
    APPCONFIG_CONFIGURATION_PROFILE_ID  required (place index profile)
    PLACE_INDEX_MAX_AGE_SECONDS         default: 900
    ENVIRONMENT                         default: N/A (events are logged unless "prod")
    LOG_LEVEL                           default: INFO
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from location_shared.config import ENVIRONMENT, LOG_LEVEL
from location_shared.dispatcher import process_batch
from location_shared.envelope import decode_headers, decode_request, encode_response, parse_rows
from location_shared.errors import backend_error
from location_shared.http_utils import _request_error, _response, _safe_message
from location_shared.routing import route

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger()
logger.setLevel(LOG_LEVEL)


def _log_event(event: Dict[str, Any]) -> None:
    # Rows may carry addresses of real people.
    if ENVIRONMENT != "prod":
        logger.debug(f"Event: {json.dumps(event, default=str)}")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    _log_event(event)

    raw_rows, err = decode_request(event.get("body"), bool(event.get("isBase64Encoded")))
    if err:
        return _request_error(err)

    function_name, err = decode_headers(event.get("headers"))
    if err:
        return _request_error(err)

    logger.info(f"[START] {function_name}: {len(raw_rows)} rows")

    target, err = route(function_name)
    if err:
        return _request_error(err)

    rows, err = parse_rows(raw_rows, target.operation)
    if err:
        return _request_error(err)

    try:
        data = process_batch(rows, target.operation, target.index_id)
    except Exception as exc:
        logger.error(f"[ERROR] {function_name} failed", exc_info=True)
        return _request_error(backend_error(_safe_message(exc)))

    logger.info(f"[INFO] {function_name}: returning {len(data)} rows")
    return _response(200, encode_response(data))
