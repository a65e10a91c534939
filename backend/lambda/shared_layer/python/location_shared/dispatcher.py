"""location_shared.dispatcher — Runs a batch of rows through a place index.

Rows are looked up one at a time, in input order, and each output row starts
with the input row's id. The batch is all-or-nothing: the first failed lookup
is re-raised and nothing is returned for the rows that did succeed.
"""

from __future__ import annotations

import logging
from typing import Any, List, Sequence

from location_shared.envelope import GeocodeRow, ReverseGeocodeRow, Row
from location_shared.location_client import NO_MATCH, forward_geocode, reverse_geocode
from location_shared.routing import OperationType

logger = logging.getLogger(__name__)

NO_MATCH_COORDINATE = -1
NO_MATCH_LABEL = "N/A"


def geocode_rows(rows: Sequence[GeocodeRow], index_id: str, client=None) -> List[List[Any]]:
    """Geocode [id, address] rows into [id, longitude, latitude] rows."""
    result_rows: List[List[Any]] = []
    for position, row in enumerate(rows):
        try:
            match = forward_geocode(index_id, row.address, client=client)
        except Exception:
            logger.error(f"[ERROR] unable to geocode rows: failed at row {position}", exc_info=True)
            raise
        if match is NO_MATCH:
            result_rows.append([row.id, NO_MATCH_COORDINATE, NO_MATCH_COORDINATE])
        else:
            longitude, latitude = match
            result_rows.append([row.id, longitude, latitude])
    return result_rows


def reverse_geocode_rows(
    rows: Sequence[ReverseGeocodeRow], index_id: str, client=None
) -> List[List[Any]]:
    """Reverse geocode [id, longitude, latitude] rows into [id, label] rows."""
    result_rows: List[List[Any]] = []
    for position, row in enumerate(rows):
        try:
            match = reverse_geocode(index_id, row.longitude, row.latitude, client=client)
        except Exception:
            logger.error(
                f"[ERROR] unable to reverse geocode rows: failed at row {position}", exc_info=True
            )
            raise
        result_rows.append([row.id, NO_MATCH_LABEL if match is NO_MATCH else match])
    return result_rows


def process_batch(
    rows: Sequence[Row], operation: OperationType, index_id: str, client=None
) -> List[List[Any]]:
    logger.info(f"[START] Processing {len(rows)} rows: operation={operation.value} index={index_id}")
    if operation is OperationType.REVERSE_GEOCODE:
        result_rows = reverse_geocode_rows(rows, index_id, client=client)
    else:
        result_rows = geocode_rows(rows, index_id, client=client)
    logger.info(f"[INFO] Processed {len(result_rows)} rows")
    return result_rows
