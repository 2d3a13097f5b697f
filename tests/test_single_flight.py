import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from ffconvert.utils.single_flight import SingleFlight


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


def test_same_key_joins_in_flight_work(executor):
    gate = threading.Event()
    calls = []

    def work():
        calls.append(1)
        gate.wait(10)
        return "done"

    flights = SingleFlight(executor)
    first = flights.submit("key", work)
    second = flights.submit("key", work)
    gate.set()

    assert first is second
    assert first.result(timeout=10) == "done"
    assert calls == [1]


def test_different_keys_run_independently(executor):
    flights = SingleFlight(executor)

    a = flights.submit("a", lambda: 1)
    b = flights.submit("b", lambda: 2)

    assert a is not b
    assert (a.result(timeout=10), b.result(timeout=10)) == (1, 2)


def test_key_is_released_after_completion(executor):
    flights = SingleFlight(executor)
    future = flights.submit("key", lambda: None)
    future.result(timeout=10)

    # Done callbacks run just after waiters are woken.
    deadline = time.monotonic() + 10
    while flights.in_flight("key") and time.monotonic() < deadline:
        time.sleep(0.01)

    assert not flights.in_flight("key")
    assert flights.submit("key", lambda: None) is not future
