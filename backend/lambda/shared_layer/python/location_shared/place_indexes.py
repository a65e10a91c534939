"""location_shared.place_indexes — Cached provider -> place index map.

The map lives in AppConfig as ``{"Esri": "...", "Here": "...", "Grab": "..."}``
(Grab only where the provider is available). It is read through a
process-wide cache that refreshes after ``PLACE_INDEX_MAX_AGE_SECONDS``.
Concurrent callers that find the cache stale share one refresh.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

from location_shared.config import (
    PLACE_INDEX_MAX_AGE_SECONDS,
    AppConfigReader,
    _get_appconfig_reader,
)
from location_shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

REQUIRED_PROVIDERS = ("Esri", "Here")


def fetch_place_indexes(reader: Optional[AppConfigReader] = None) -> Dict[str, str]:
    """Read and validate the place index document from AppConfig."""
    document = (reader or _get_appconfig_reader()).get()
    missing = [key for key in REQUIRED_PROVIDERS if not document.get(key)]
    if missing:
        logger.error(f"[ERROR] missing place indexes in AppConfig: {missing}")
        raise ConfigurationError("missing place indexes in AppConfig")
    logger.debug(f"Got place index configuration: {document}")
    return {str(k): str(v) for k, v in document.items() if v}


class PlaceIndexCache:
    """Read-through cache with a freshness window and a single in-flight refresh."""

    def __init__(
        self,
        fetcher: Callable[[], Dict[str, str]] = fetch_place_indexes,
        max_age: float = PLACE_INDEX_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._max_age = max_age
        self._clock = clock
        self._value: Optional[Dict[str, str]] = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def _fresh(self) -> bool:
        return self._value is not None and (self._clock() - self._fetched_at) < self._max_age

    def get(self) -> Dict[str, str]:
        if self._fresh():
            return self._value
        with self._lock:
            # Another caller may have refreshed while we waited.
            if self._fresh():
                return self._value
            value = self._fetcher()
            self._value = value
            self._fetched_at = self._clock()
            logger.info(f"[INFO] Refreshed place index map: providers={sorted(value)}")
            return value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None
            self._fetched_at = 0.0


_place_index_cache: Optional[PlaceIndexCache] = None


def get_place_index_cache() -> PlaceIndexCache:
    """Get (or create) the process-wide place index cache."""
    global _place_index_cache
    if _place_index_cache is None:
        _place_index_cache = PlaceIndexCache()
    return _place_index_cache
