"""
Connection management for the works engine.

Every aggregate pass takes its own connection from a small pool so the
passes of one request can run concurrently.  Connections are:

  - read-only (SQLite URI ``mode=ro``); the engine never writes;
  - shareable across threads (``check_same_thread=False``) so the planner
    can call ``interrupt()`` from the request thread when a pass overruns
    its budget;
  - equipped with the normalizer's deterministic SQL functions
    (``works_num``, ``works_year``).

Pools are keyed by database path, so tests pointing ``WorksConfig.db_path``
at a temporary file get their own pool.
"""

from __future__ import annotations

import logging
import queue
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from utils.config import WorksConfig
from works.errors import PoolExhaustedError
from works.normalizer import SQL_FUNCTIONS

logger = logging.getLogger(__name__)


def register_functions(conn: sqlite3.Connection) -> None:
    """Register the normalizer's coercion functions on ``conn``."""
    for name, func in SQL_FUNCTIONS.items():
        conn.create_function(name, 1, func, deterministic=True)


class ConnectionPool:
    """Simple SQLite connection pool using a queue for thread-safety.

    Connections are created lazily up to ``max_size``.  When a connection is
    released it is returned to the pool (not closed) so subsequent passes
    can reuse it without the open/pragma overhead.
    """

    def __init__(self, db_path: Path, max_size: int = 10, acquire_timeout: float = 30.0) -> None:
        self._db_path = db_path
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._pool: queue.Queue[sqlite3.Connection] = queue.Queue(maxsize=max_size)
        self._active = 0
        self._lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _make_conn(self) -> sqlite3.Connection:
        """Open a new read-only connection with standard pragmas."""
        uri = f"file:{self._db_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False,
                               timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=5000")
        register_functions(conn)
        return conn

    def acquire(self) -> sqlite3.Connection:
        """Acquire a connection from the pool (create if needed, block if full).

        Raises:
            PoolExhaustedError: If every connection stays checked out for
                ``acquire_timeout`` seconds.
        """
        try:
            return self._pool.get_nowait()
        except queue.Empty:
            pass
        with self._lock:
            if self._active < self._max_size:
                self._active += 1
                try:
                    return self._make_conn()
                except sqlite3.Error:
                    self._active -= 1
                    raise
        # Pool is full, wait for one to be released
        try:
            return self._pool.get(timeout=self._acquire_timeout)
        except queue.Empty as exc:
            raise PoolExhaustedError(self._db_path, self._acquire_timeout) from exc

    def release(self, conn: sqlite3.Connection) -> None:
        """Return a connection to the pool."""
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            conn.close()
            with self._lock:
                self._active -= 1

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager yielding a pooled connection."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def close_all(self) -> None:
        """Close all pooled connections (call on shutdown)."""
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except queue.Empty:
                break
        with self._lock:
            self._active = 0


_pools: dict[Path, ConnectionPool] = {}
_pools_lock = threading.Lock()


def get_pool(config: WorksConfig) -> ConnectionPool:
    """Return the pool for ``config.db_path``, creating it if needed.

    Raises:
        FileNotFoundError: If the database file does not exist.
    """
    db_path = Path(config.db_path).resolve()
    pool = _pools.get(db_path)
    if pool is not None:
        return pool
    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at '{db_path}'. "
            "Load it with works.schema.create_works_db() first."
        )
    with _pools_lock:
        pool = _pools.get(db_path)
        if pool is None:
            logger.debug("Opening connection pool for %s (size %d)", db_path, config.pool_size)
            pool = ConnectionPool(db_path, config.pool_size, config.pool_acquire_timeout)
            _pools[db_path] = pool
    return pool


def close_pools() -> None:
    """Close every pool (call on shutdown or between tests)."""
    with _pools_lock:
        for pool in _pools.values():
            pool.close_all()
        _pools.clear()
