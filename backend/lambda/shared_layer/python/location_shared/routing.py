"""location_shared.routing — Function-name router.

Snowflake external functions are named ``<operation>_..._<provider>``, e.g.
``reverse_geocode_amazon_location_service_provider_esri``. The prefix picks
the operation and the suffix picks the data provider, whose place index name
comes from the AppConfig place index map.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from location_shared.errors import (
    PROVIDER_INDEX_UNAVAILABLE,
    UNKNOWN_PROVIDER,
    UNRECOGNIZED_OPERATION,
    RequestError,
    configuration_error,
)
from location_shared.place_indexes import get_place_index_cache

logger = logging.getLogger(__name__)


class OperationType(enum.Enum):
    GEOCODE = "geocode"
    REVERSE_GEOCODE = "reverseGeocode"


class ProviderKey(enum.Enum):
    # Values are the keys of the AppConfig place index document.
    HERE = "Here"
    ESRI = "Esri"
    GRAB = "Grab"


_OPERATION_PREFIXES = (
    ("geocode", OperationType.GEOCODE),
    ("reverse", OperationType.REVERSE_GEOCODE),
)


@dataclass(frozen=True)
class Route:
    operation: OperationType
    provider: ProviderKey
    index_id: str


def classify_operation(name: Any) -> Tuple[Optional[OperationType], Optional[RequestError]]:
    normalized = name.lower() if isinstance(name, str) else ""
    for prefix, operation in _OPERATION_PREFIXES:
        if normalized.startswith(prefix):
            return operation, None
    logger.error(f"[ERROR] no operation type found, invalid function name: {name!r}")
    return None, configuration_error(
        UNRECOGNIZED_OPERATION, "no operation type found, invalid function name"
    )


def resolve_provider(name: Any) -> Tuple[Optional[ProviderKey], Optional[RequestError]]:
    normalized = name.lower() if isinstance(name, str) else ""
    for provider in ProviderKey:
        if normalized.endswith(provider.value.lower()):
            return provider, None
    logger.error(f"[ERROR] no provider found, invalid function name: {name!r}")
    return None, configuration_error(UNKNOWN_PROVIDER, "no provider found, invalid function name")


def resolve_index_id(
    provider: ProviderKey, cache=None
) -> Tuple[Optional[str], Optional[RequestError]]:
    """Look up the place index backing ``provider``.

    Any failure to obtain the map, or a map without the provider, is
    reported as ProviderIndexUnavailable. A map missing the provider is
    dropped so the next call reads AppConfig again.
    """
    cache = cache or get_place_index_cache()
    try:
        indexes = cache.get()
    except Exception as exc:
        logger.error("[ERROR] error getting place index configuration", exc_info=True)
        return None, configuration_error(
            PROVIDER_INDEX_UNAVAILABLE, f"place index configuration unavailable: {exc}"
        )

    index_id = indexes.get(provider.value)
    if not index_id:
        logger.error(f"[ERROR] no place index configured for provider {provider.value}")
        cache.invalidate()
        return None, configuration_error(
            PROVIDER_INDEX_UNAVAILABLE, f"no place index configured for provider {provider.value}"
        )
    return index_id, None


def route(name: Any, cache=None) -> Tuple[Optional[Route], Optional[RequestError]]:
    """Classify ``name`` and resolve its place index in one step."""
    operation, err = classify_operation(name)
    if err:
        return None, err
    provider, err = resolve_provider(name)
    if err:
        return None, err
    index_id, err = resolve_index_id(provider, cache=cache)
    if err:
        return None, err
    logger.info(f"[INFO] Routed {name} to {operation.value} on {provider.value} index {index_id}")
    return Route(operation, provider, index_id), None
