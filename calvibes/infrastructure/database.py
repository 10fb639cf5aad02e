"""SQLite access for the category cache

Every read and write of category_cache goes through get_db_connection() or
db_transaction(); nothing else opens connections. Connections come from a
small process-wide pool and are opened in WAL mode so analysis requests can
read their snapshot while another request writes back its batch.

Provides:
- DatabaseConnectionPool and the shared get_pool() instance
- retry_on_db_lock for writers that hit SQLITE_BUSY
- get_db_path() honoring CALVIBES_DB_PATH
- init_database() / validate_schema() (see database_schema.py)
"""

from __future__ import annotations

import atexit
import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache, wraps
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from calvibes.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
    DB_TEMP_CONN_MAX,
)
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "calvibes.db"

logger = get_logger(__name__)


class _PooledConnection(sqlite3.Connection):
    overflow = False


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "locked" in message or "busy" in message


def _backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(base_delay * (2**attempt), max_delay)
    return delay + random.uniform(0, delay * DB_RETRY_JITTER)


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Retry a database operation while SQLite reports the file as locked.

    Two requests that both classify new titles will write back at about the
    same time; the loser sees "database is locked" and sleeps with
    exponential backoff plus jitter. Any other OperationalError is raised
    immediately.

    Usage:
        @retry_on_db_lock()
        def save(...):
            with db_transaction() as conn:
                conn.execute(...)
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except sqlite3.OperationalError as e:
                    if not _is_lock_error(e):
                        raise
                    if attempt >= max_retries:
                        counter("database.lock_retry_exhausted")
                        logger.error(
                            "%s still locked after %d retries: %s", func.__name__, attempt, e
                        )
                        raise

                    pause = _backoff(attempt, base_delay, max_delay)
                    attempt += 1
                    counter("database.lock_retry")
                    logger.warning(
                        "%s hit a locked database (retry %d/%d in %.2fs)",
                        func.__name__,
                        attempt,
                        max_retries,
                        pause,
                    )
                    time.sleep(pause)

        return wrapper  # type: ignore[return-value]

    return decorator


class DatabaseConnectionPool:
    """
    Fixed-size pool of SQLite connections shared across threads.

    When every pooled connection is busy for longer than DB_POOL_TIMEOUT, an
    overflow connection is opened (at most DB_TEMP_CONN_MAX at a time) and
    closed again on release instead of being pooled.
    """

    def __init__(self, db_path: Path, size: int = DB_POOL_SIZE):
        self.db_path = db_path
        self.size = size
        self.closed = False
        self._idle: Queue[sqlite3.Connection] = Queue(maxsize=size)
        self._overflow = 0
        self._overflow_lock = Lock()

        for _ in range(size):
            self._idle.put(self._connect())

        atexit.register(self.close)

    def _connect(self) -> _PooledConnection:
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,
            factory=_PooledConnection,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def acquire(self) -> sqlite3.Connection:
        """
        Take a connection, waiting up to DB_POOL_TIMEOUT for an idle one.

        Raises:
            RuntimeError: If the pool is closed or the overflow limit is reached
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")

        try:
            return self._idle.get(timeout=DB_POOL_TIMEOUT)
        except Empty:
            pass

        with self._overflow_lock:
            if self._overflow >= DB_TEMP_CONN_MAX:
                raise RuntimeError(
                    f"Connection pool exhausted: {self.size} pooled and "
                    f"{self._overflow} overflow connections in use"
                ) from None
            self._overflow += 1
            overflow = self._overflow

        counter("database.pool_overflow")
        log_event("database.pool_exhausted", pool_size=self.size, overflow=overflow)
        logger.warning("Pool of %d exhausted, opening overflow connection %d", self.size, overflow)

        conn = self._connect()
        conn.overflow = True
        return conn

    def release(self, conn: sqlite3.Connection) -> None:
        if getattr(conn, "overflow", False):
            conn.close()
            with self._overflow_lock:
                self._overflow -= 1
            return

        if self.closed:
            conn.close()
            return

        try:
            self._idle.put_nowait(conn)
        except Full:
            conn.close()

    def close(self) -> None:
        """Close idle connections; busy ones are closed when released."""
        self.closed = True
        while True:
            try:
                self._idle.get_nowait().close()
            except Empty:
                break

    def stats(self) -> dict[str, Any]:
        idle = self._idle.qsize()
        return {
            "pool_size": self.size,
            "available": idle,
            "in_use": self.size - idle,
            "overflow": self._overflow,
            "closed": self.closed,
        }


def get_db_path() -> Path:
    """CALVIBES_DB_PATH when set, else calvibes/data/calvibes.db."""
    if env_path := os.getenv("CALVIBES_DB_PATH"):
        return Path(env_path)
    return DEFAULT_DB_PATH


@lru_cache(maxsize=1)
def get_pool() -> DatabaseConnectionPool:
    """The process-wide pool for the current database path."""
    return DatabaseConnectionPool(get_db_path())


def reset_pool() -> None:
    """Close the shared pool so the next access reopens it (after a path change)."""
    if get_pool.cache_info().currsize:
        get_pool().close()
    get_pool.cache_clear()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Borrow a pooled connection for the duration of the block.

    Raises:
        FileNotFoundError: If the database file has not been created yet
    """
    db_path = get_db_path()
    if not db_path.exists():
        raise FileNotFoundError(f"Database not found: {db_path}\nRun: calvibes-analyze --init-db")

    pool = get_pool()
    conn = pool.acquire()
    try:
        yield conn
    finally:
        pool.release(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """Commit when the block succeeds, roll back and re-raise when it fails."""
    with get_db_connection() as conn:
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        conn.commit()


def get_pool_stats() -> dict[str, Any]:
    return get_pool().stats()


def init_database() -> None:
    """Create the schema at get_db_path() if it does not exist yet."""
    from calvibes.infrastructure.database_schema import init_database as _init_database

    _init_database(get_db_path())


def validate_schema() -> bool:
    """
    Check the live database has the category_cache table and its columns.

    Raises:
        ValueError: If the table or a column is missing
    """
    from calvibes.infrastructure.database_schema import validate_schema as _validate_schema

    with get_db_connection() as conn:
        return _validate_schema(conn)
