"""location_shared.envelope — Snowflake external-function batch envelope.

Snowflake posts ``{"data": [[row_number, arg1, ...], ...]}`` and expects the
same shape back, one output row per input row, in order. The first element
of every row is echoed unchanged so Snowflake can rejoin the results.

The invoking function name arrives in the ``sf-external-function-name``
header.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
import numbers
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from location_shared.errors import (
    INVALID_BODY,
    INVALID_ROW,
    MISSING_FUNCTION_NAME,
    RequestError,
    client_input_error,
)
from location_shared.routing import OperationType

FUNCTION_NAME_HEADER = "sf-external-function-name"


@dataclass(frozen=True)
class GeocodeRow:
    id: Any
    address: str


@dataclass(frozen=True)
class ReverseGeocodeRow:
    id: Any
    longitude: float
    latitude: float


Row = Union[GeocodeRow, ReverseGeocodeRow]


def decode_request(
    raw_body: Optional[Union[str, bytes]], is_base64: bool = False
) -> Tuple[Optional[List[List[Any]]], Optional[RequestError]]:
    """Parse the request body into raw rows.

    Returns (rows, None) on success or (None, error) when the body is not a
    JSON object carrying a ``data`` list of rows.
    """
    invalid = client_input_error(INVALID_BODY, "invalid body")
    raw = raw_body or "{}"
    try:
        if is_base64:
            raw = base64.b64decode(raw).decode("utf-8")
        body = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, TypeError, ValueError):
        return None, invalid

    if not isinstance(body, dict) or "data" not in body:
        return None, invalid

    rows = body["data"]
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        return None, invalid
    return rows, None


def decode_headers(
    headers: Optional[Mapping[str, Any]],
) -> Tuple[Optional[str], Optional[RequestError]]:
    """Return the invoking external-function name, verbatim."""
    for key, value in (headers or {}).items():
        if isinstance(key, str) and key.lower() == FUNCTION_NAME_HEADER:
            if value:
                return str(value), None
            break
    return None, client_input_error(
        MISSING_FUNCTION_NAME, f"missing required Snowflake header: {FUNCTION_NAME_HEADER}"
    )


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, bool, int, float))


def _is_coordinate(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _parse_row(index: int, raw: Sequence[Any], operation: OperationType) -> Tuple[Optional[Row], Optional[str]]:
    if operation is OperationType.GEOCODE:
        if len(raw) != 2:
            return None, f"row {index}: expected [id, address], got {len(raw)} values"
        row_id, address = raw
        if not _is_scalar(row_id):
            return None, f"row {index}: id must be a scalar"
        if not isinstance(address, str):
            return None, f"row {index}: address must be a string"
        return GeocodeRow(row_id, address), None

    if len(raw) != 3:
        return None, f"row {index}: expected [id, longitude, latitude], got {len(raw)} values"
    row_id, longitude, latitude = raw
    if not _is_scalar(row_id):
        return None, f"row {index}: id must be a scalar"
    if not (_is_coordinate(longitude) and _is_coordinate(latitude)):
        return None, f"row {index}: longitude and latitude must be numbers"
    try:
        longitude, latitude = float(longitude), float(latitude)
    except OverflowError:
        return None, f"row {index}: longitude and latitude must be finite numbers"
    if not (math.isfinite(longitude) and math.isfinite(latitude)):
        return None, f"row {index}: longitude and latitude must be finite numbers"
    return ReverseGeocodeRow(row_id, longitude, latitude), None


def parse_rows(
    raw_rows: Sequence[Sequence[Any]], operation: OperationType
) -> Tuple[Optional[List[Row]], Optional[RequestError]]:
    """Validate every raw row against the operation's shape.

    The whole batch is rejected on the first malformed row.
    """
    rows: List[Row] = []
    for index, raw in enumerate(raw_rows):
        row, problem = _parse_row(index, raw, operation)
        if problem:
            return None, client_input_error(INVALID_ROW, problem)
        rows.append(row)
    return rows, None


def encode_response(result_rows: Sequence[Sequence[Any]]) -> str:
    return json.dumps({"data": [list(row) for row in result_rows]})
