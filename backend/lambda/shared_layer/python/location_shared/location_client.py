"""location_shared.location_client — Amazon Location place index lookups.

One API call per lookup. Botocore errors propagate unmodified; retries are
limited to the transport retry policy configured on the client.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

from location_shared.aws_clients import _get_location


class _NoMatch:
    """Sentinel for a lookup that found no place."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_MATCH"

    def __bool__(self) -> bool:
        return False


NO_MATCH = _NoMatch()


def _first_place(resp: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    results = resp.get("Results") or []
    if not results:
        return None
    return results[0].get("Place") or None


def forward_geocode(
    index_id: str, address: str, client=None
) -> Union[Tuple[float, float], _NoMatch]:
    """Return the (longitude, latitude) of the best match for ``address``."""
    resp = (client or _get_location()).search_place_index_for_text(
        IndexName=index_id,
        Text=address,
        MaxResults=1,
    )
    place = _first_place(resp)
    point = ((place or {}).get("Geometry") or {}).get("Point") or []
    if len(point) < 2:
        return NO_MATCH
    return point[0], point[1]


def reverse_geocode(
    index_id: str, longitude: float, latitude: float, client=None
) -> Union[str, _NoMatch]:
    """Return the label of the place nearest to (longitude, latitude)."""
    resp = (client or _get_location()).search_place_index_for_position(
        IndexName=index_id,
        Position=[longitude, latitude],
        MaxResults=1,
    )
    label = (_first_place(resp) or {}).get("Label")
    if not label:
        return NO_MATCH
    return label
