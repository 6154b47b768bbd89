"""A bounded, thread-safe connection pool with configurable limits."""

from __future__ import annotations

import threading
import time
from collections import deque
from datetime import timedelta
from typing import Any, Callable, Optional, Union

Connector = Callable[[str], Any]

_DEFAULT_MAX_SIZE = 10
_DEFAULT_CONNECTION_TIMEOUT = timedelta(seconds=30)
_RETRY_PAUSE = 0.01


class PoolError(Exception):
    """The pool could not be built or could not hand out a connection."""


def _as_timedelta(value: Union[timedelta, float, int]) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


class PoolBuilder:
    """Collects pool settings; each setter returns the builder for chaining."""

    def __init__(self) -> None:
        self._max_size = _DEFAULT_MAX_SIZE
        self._min_idle: Optional[int] = None
        self._connection_timeout = _DEFAULT_CONNECTION_TIMEOUT

    def max_size(self, value: int) -> "PoolBuilder":
        """Set the largest number of connections the pool will open."""
        if value <= 0:
            raise ValueError("max_size must be positive")
        self._max_size = value
        return self

    def min_idle(self, value: Optional[int]) -> "PoolBuilder":
        """Set how many idle connections to keep; None means max_size."""
        if value is not None and value < 0:
            raise ValueError("min_idle must not be negative")
        self._min_idle = value
        return self

    def connection_timeout(self, value: Union[timedelta, float, int]) -> "PoolBuilder":
        """Set how long to wait for a connection (timedelta or seconds)."""
        timeout = _as_timedelta(value)
        if timeout <= timedelta(0):
            raise ValueError("connection_timeout must be positive")
        self._connection_timeout = timeout
        return self

    def build(self, database_url: str, connector: Connector) -> "Pool":
        """Create the pool and open its initial idle connections."""
        if self._min_idle is not None and self._min_idle > self._max_size:
            raise ValueError("min_idle must be no larger than max_size")
        pool = Pool(
            database_url,
            connector,
            max_size=self._max_size,
            min_idle=self._min_idle,
            connection_timeout=self._connection_timeout,
        )
        pool._fill()
        return pool


class Pool:
    """Hands out connections made by ``connector`` up to ``max_size`` at once."""

    def __init__(
        self,
        database_url: str,
        connector: Connector,
        *,
        max_size: int = _DEFAULT_MAX_SIZE,
        min_idle: Optional[int] = None,
        connection_timeout: timedelta = _DEFAULT_CONNECTION_TIMEOUT,
    ) -> None:
        self._database_url = database_url
        self._connector = connector
        self._max_size = max_size
        self._min_idle = min_idle
        self._connection_timeout = connection_timeout
        self._idle: deque[Any] = deque()
        self._total = 0
        self._closed = False
        self._cond = threading.Condition()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def min_idle(self) -> Optional[int]:
        return self._min_idle

    @property
    def connection_timeout(self) -> timedelta:
        return self._connection_timeout

    @property
    def idle_count(self) -> int:
        with self._cond:
            return len(self._idle)

    @property
    def size(self) -> int:
        """Connections currently open, idle or checked out."""
        with self._cond:
            return self._total

    def _connect(self) -> Any:
        return self._connector(self._database_url)

    def _fill(self) -> None:
        target = self._max_size if self._min_idle is None else self._min_idle
        deadline = time.monotonic() + self._connection_timeout.total_seconds()
        while True:
            with self._cond:
                if self._total >= target:
                    return
            try:
                connection = self._connect()
            except Exception as exc:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolError(f"could not open initial connections: {exc}") from exc
                time.sleep(min(_RETRY_PAUSE, remaining))
                continue
            with self._cond:
                self._idle.append(connection)
                self._total += 1

    def get(self) -> Any:
        """Check out a connection, waiting up to connection_timeout for one."""
        deadline = time.monotonic() + self._connection_timeout.total_seconds()
        last_error: Optional[BaseException] = None
        while True:
            with self._cond:
                while True:
                    if self._closed:
                        raise PoolError("pool is closed")
                    if self._idle:
                        return self._idle.popleft()
                    if self._total < self._max_size:
                        self._total += 1
                        break
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise PoolError("timed out waiting for a connection")
                    self._cond.wait(remaining)
            try:
                return self._connect()
            except Exception as exc:
                last_error = exc
                with self._cond:
                    self._total -= 1
                    self._cond.notify()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise PoolError(f"timed out waiting for a connection: {last_error}") from last_error
            time.sleep(min(_RETRY_PAUSE, remaining))

    def put(self, connection: Any) -> None:
        """Return a checked-out connection to the pool."""
        with self._cond:
            if not self._closed:
                self._idle.append(connection)
                self._cond.notify()
                return
            self._total = max(self._total - 1, 0)
        _close_connection(connection)

    def close(self) -> None:
        """Close idle connections and refuse further checkouts."""
        with self._cond:
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._total = max(self._total - len(idle), 0)
            self._cond.notify_all()
        for connection in idle:
            _close_connection(connection)

    def __enter__(self) -> "Pool":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _close_connection(connection: Any) -> None:
    closer = getattr(connection, "close", None)
    if callable(closer):
        closer()


def build_pool(database_url: str, connector: Connector) -> Pool:
    """Build a pool using the default settings.

    A listener that waits for notifications holds one connection for its
    lifetime; size the pool with that in mind, using build_pool_with.
    """
    return build_pool_with(database_url, lambda builder: builder, connector)


def build_pool_with(
    database_url: str,
    configure: Callable[[PoolBuilder], PoolBuilder],
    connector: Connector,
) -> Pool:
    """Build a pool after ``configure`` has adjusted a fresh PoolBuilder."""
    return configure(PoolBuilder()).build(database_url, connector)