import threading

import pytest

from flute.thread_pool import ThreadPool


def add(a, b):
    return a + b


@pytest.mark.timeout(10)
def test_execute_returns_result():
    pool = ThreadPool()
    pool.start(4)
    result = pool.execute(add, 1, 2)
    assert result.result(timeout=5) == 3
    pool.shutdown()


@pytest.mark.timeout(10)
def test_keyword_arguments():
    pool = ThreadPool()
    pool.start(2)
    future = pool.execute(add, a="x", b="y")
    assert future.result(timeout=5) == "xy"
    pool.shutdown()


@pytest.mark.timeout(10)
def test_exception_is_delivered_through_future():
    def boom():
        raise KeyError("missing")

    pool = ThreadPool()
    pool.start(1)
    future = pool.execute(boom)
    with pytest.raises(KeyError):
        future.result(timeout=5)
    pool.shutdown()


def test_execute_before_start_raises():
    pool = ThreadPool()
    with pytest.raises(RuntimeError):
        pool.execute(add, 1, 2)


@pytest.mark.timeout(10)
def test_execute_after_shutdown_raises():
    pool = ThreadPool()
    pool.start(1)
    pool.shutdown()
    with pytest.raises(RuntimeError):
        pool.execute(add, 1, 2)


@pytest.mark.timeout(10)
def test_start_twice_raises():
    pool = ThreadPool()
    pool.start(1)
    with pytest.raises(RuntimeError):
        pool.start(1)
    pool.shutdown()


@pytest.mark.timeout(10)
def test_shutdown_drains_queued_tasks_in_order():
    pool = ThreadPool()
    pool.start(1)
    gate = threading.Event()
    order = []
    blocker = pool.execute(gate.wait, 5)
    futures = [pool.execute(order.append, index) for index in range(5)]
    gate.set()
    pool.shutdown()
    assert blocker.result(timeout=0) is True
    assert all(future.done() for future in futures)
    assert order == list(range(5))


@pytest.mark.timeout(10)
def test_restart_after_shutdown():
    pool = ThreadPool()
    pool.start(1)
    pool.shutdown()
    pool.start(2)
    assert pool.execute(add, 2, 3).result(timeout=5) == 5
    pool.shutdown()