"""location_shared.snowflake_client — Pooled Snowflake statement execution.

Connection options are assembled once per process from the Secrets Manager
secret (account, username, password) and the AppConfig warehouse profile
(warehouse, database). Connections are opened lazily, at most
``SNOWFLAKE_POOL_MAX`` at a time, and idle ones are kept for reuse.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

import snowflake.connector
from snowflake.connector import DictCursor
from snowflake.connector.errors import DatabaseError, InterfaceError, OperationalError

from location_shared.config import (
    SNOWFLAKE_POOL_MAX,
    get_snowflake_account_info,
    get_snowflake_warehouse_config,
)

logger = logging.getLogger(__name__)

# Errors after which a connection is not returned to the pool.
_BROKEN_CONNECTION_ERRORS = (InterfaceError, OperationalError)


class SnowflakeConnectionPool:
    """Bounded pool of Snowflake connections (max ``max_size``, min ``min_size`` idle)."""

    def __init__(
        self,
        factory: Callable[[], Any],
        max_size: int = SNOWFLAKE_POOL_MAX,
        min_size: int = 0,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._factory = factory
        self._max_size = max_size
        self._min_size = min_size
        self._slots = threading.BoundedSemaphore(max_size)
        self._idle: List[Any] = []
        self._lock = threading.Lock()

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    def _take(self) -> Any:
        with self._lock:
            if self._idle:
                return self._idle.pop()
        return self._factory()

    def _give_back(self, conn: Any) -> None:
        with self._lock:
            self._idle.append(conn)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a connection; blocks while ``max_size`` are in use."""
        self._slots.acquire()
        conn = None
        try:
            conn = self._take()
            yield conn
        except _BROKEN_CONNECTION_ERRORS:
            if conn is not None:
                _close_quietly(conn)
                conn = None
            raise
        finally:
            if conn is not None:
                self._give_back(conn)
            self._slots.release()

    def close(self) -> None:
        """Close idle connections down to ``min_size``."""
        with self._lock:
            while len(self._idle) > self._min_size:
                _close_quietly(self._idle.pop())


def _close_quietly(conn: Any) -> None:
    try:
        conn.close()
    except Exception:
        logger.warning("[WARNING] Failed to close Snowflake connection", exc_info=True)


def _connection_options() -> Dict[str, str]:
    options: Dict[str, str] = {}
    options.update(get_snowflake_account_info())
    options.update(get_snowflake_warehouse_config())
    return options


class SnowflakeClient:
    """Runs SQL statements against Snowflake on pooled connections."""

    def __init__(
        self,
        options_loader: Callable[[], Dict[str, str]] = _connection_options,
        connect: Callable[..., Any] = snowflake.connector.connect,
        max_connections: int = SNOWFLAKE_POOL_MAX,
    ) -> None:
        self._options_loader = options_loader
        self._connect = connect
        self._max_connections = max_connections
        self._options: Optional[Dict[str, str]] = None
        self._pool: Optional[SnowflakeConnectionPool] = None
        self._lock = threading.Lock()

    def _get_options(self) -> Dict[str, str]:
        if self._options is None:
            try:
                self._options = self._options_loader()
            except Exception:
                logger.error("[ERROR] Failed to get Snowflake connection options", exc_info=True)
                raise
        return self._options

    def _open_connection(self) -> Any:
        options = self._get_options()
        return self._connect(
            account=options["account"],
            user=options["username"],
            password=options["password"],
            warehouse=options["warehouse"],
            database=options["database"],
        )

    def _get_pool(self) -> SnowflakeConnectionPool:
        with self._lock:
            if self._pool is None:
                self._pool = SnowflakeConnectionPool(
                    self._open_connection, max_size=self._max_connections, min_size=0
                )
            return self._pool

    def execute_statement(self, sql_text: str) -> List[Dict[str, Any]]:
        """Execute one statement and return its rows with lower-cased column names.

        Bind parameters are not used: the statements are DDL, which Snowflake
        does not accept bindings for.
        """
        pool = self._get_pool()
        try:
            with pool.connection() as conn:
                cursor = conn.cursor(DictCursor)
                try:
                    cursor.execute(sql_text)
                    rows = cursor.fetchall() or []
                finally:
                    cursor.close()
        except DatabaseError as exc:
            logger.error(
                f"[ERROR] Failed to execute statement due to the following error: {exc}",
                exc_info=True,
            )
            raise
        logger.debug(f"Executed statement: rows={len(rows)} sql={sql_text}")
        return [{str(k).lower(): v for k, v in row.items()} for row in rows]

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()


_snowflake_client: Optional[SnowflakeClient] = None


def get_snowflake_client() -> SnowflakeClient:
    """Get (or create) the process-wide Snowflake client."""
    global _snowflake_client
    if _snowflake_client is None:
        _snowflake_client = SnowflakeClient()
    return _snowflake_client
