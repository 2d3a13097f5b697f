"""
Deduplicates concurrent calls for the same key.

While work for a key is in flight, every further call for that key receives the
same future instead of starting the work again. Once the future resolves, the key
is forgotten and the next call starts fresh work.
"""
import threading
from concurrent.futures import Executor, Future
from typing import Callable, Dict, Hashable

from loguru import logger


class SingleFlight:
    def __init__(self, executor: Executor):
        self._executor = executor
        self._in_flight: Dict[Hashable, Future] = {}
        self._lock = threading.Lock()

    def submit(self, key: Hashable, fn: Callable, *args, **kwargs) -> Future:
        with self._lock:
            future = self._in_flight.get(key)
            if future is not None:
                logger.debug(f"Joining in-flight work for {key!r}")
                return future
            future = self._executor.submit(fn, *args, **kwargs)
            self._in_flight[key] = future
        # Registered outside the lock: the callback runs inline if the work is already done.
        future.add_done_callback(lambda f: self._forget(key, f))
        return future

    def _forget(self, key: Hashable, future: Future):
        with self._lock:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._in_flight
