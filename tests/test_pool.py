import threading
from datetime import timedelta

import pytest

from pgjobstore.pool import Pool, PoolBuilder, PoolError, build_pool, build_pool_with

URL = "postgres://127.0.0.1:1/unused"


class FakeConnection:
    def __init__(self, url):
        self.url = url
        self.closed = False

    def close(self):
        self.closed = True


class CountingConnector:
    def __init__(self):
        self.made = []

    def __call__(self, url):
        connection = FakeConnection(url)
        self.made.append(connection)
        return connection


def refusing_connector(url):
    raise ConnectionRefusedError(f"cannot reach {url}")


def lazy_pool_with(configure, connector=refusing_connector):
    return build_pool_with(URL, lambda b: configure(b.min_idle(0)), connector)


def test_default_pool_has_default_capacity():
    pool = lazy_pool_with(lambda b: b)
    assert pool.max_size == 10


def test_default_pool_has_default_connection_timeout():
    pool = lazy_pool_with(lambda b: b)
    assert pool.connection_timeout == timedelta(seconds=30)


def test_custom_max_size_and_timeout_are_honoured():
    pool = lazy_pool_with(lambda b: b.max_size(4).connection_timeout(timedelta(milliseconds=5)))
    assert pool.max_size == 4
    assert pool.connection_timeout == timedelta(milliseconds=5)


def test_minimum_capacity_is_kept():
    pool = lazy_pool_with(lambda b: b.max_size(1).connection_timeout(0.005))
    assert pool.max_size == 1


def test_build_pool_opens_max_size_connections_eagerly():
    connector = CountingConnector()
    pool = build_pool(URL, connector)
    assert len(connector.made) == 10
    assert pool.idle_count == 10
    assert all(c.url == URL for c in connector.made)


def test_min_idle_limits_eager_connections():
    connector = CountingConnector()
    pool = build_pool_with(URL, lambda b: b.max_size(5).min_idle(2), connector)
    assert len(connector.made) == 2
    assert pool.size == 2


def test_eager_build_fails_when_server_unreachable():
    with pytest.raises(PoolError):
        build_pool_with(URL, lambda b: b.connection_timeout(0.02), refusing_connector)


def test_lazy_pool_get_fails_when_server_unreachable():
    pool = lazy_pool_with(lambda b: b.connection_timeout(0.02))
    with pytest.raises(PoolError):
        pool.get()
    assert pool.size == 0


def test_get_and_put_reuse_connections():
    connector = CountingConnector()
    pool = lazy_pool_with(lambda b: b.max_size(2), connector)
    first = pool.get()
    pool.put(first)
    again = pool.get()
    assert again is first
    assert len(connector.made) == 1


def test_exhausted_pool_times_out():
    connector = CountingConnector()
    pool = lazy_pool_with(lambda b: b.max_size(1).connection_timeout(0.05), connector)
    pool.get()
    with pytest.raises(PoolError):
        pool.get()


def test_waiting_get_receives_returned_connection():
    connector = CountingConnector()
    pool = lazy_pool_with(lambda b: b.max_size(1).connection_timeout(2), connector)
    held = pool.get()
    timer = threading.Timer(0.05, pool.put, args=(held,))
    timer.start()
    try:
        received = pool.get()
    finally:
        timer.join()
    assert received is held


def test_close_closes_idle_connections_and_refuses_get():
    connector = CountingConnector()
    pool = build_pool_with(URL, lambda b: b.max_size(2), connector)
    pool.close()
    assert all(c.closed for c in connector.made)
    with pytest.raises(PoolError):
        pool.get()


def test_put_after_close_closes_connection():
    connector = CountingConnector()
    pool = lazy_pool_with(lambda b: b.max_size(1), connector)
    held = pool.get()
    pool.close()
    pool.put(held)
    assert held.closed


def test_context_manager_closes_pool():
    connector = CountingConnector()
    with build_pool_with(URL, lambda b: b.max_size(1), connector) as pool:
        assert isinstance(pool, Pool)
    assert connector.made[0].closed


def test_zero_max_size_is_rejected():
    with pytest.raises(ValueError):
        PoolBuilder().max_size(0)


def test_min_idle_above_max_size_is_rejected():
    with pytest.raises(ValueError):
        PoolBuilder().max_size(2).min_idle(3).build(URL, CountingConnector())


def test_non_positive_timeout_is_rejected():
    with pytest.raises(ValueError):
        PoolBuilder().connection_timeout(0)