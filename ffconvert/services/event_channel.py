"""
An ordered, multi-consumer event channel.

The converter reports back to its caller through named events (`convert-log`,
`convert-progress`). Publishing is serialized by a lock, so every subscriber sees
events in exactly the order they were published, even when several threads publish.
Delivery is synchronous: when `publish()` returns, every subscriber has received the
event.
"""
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

from loguru import logger

Subscriber = Callable[[Any], None]


class EventChannel:
    def __init__(self):
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._subscribers_lock = threading.Lock()
        # Reentrant so that a subscriber may publish follow-up events itself.
        self._publish_lock = threading.RLock()

    def subscribe(self, event: str, callback: Subscriber) -> Callable[[], None]:
        """
        Registers a callback for an event name.

        Returns:
            A function that removes the subscription when called.
        """
        with self._subscribers_lock:
            self._subscribers[event].append(callback)
        return lambda: self.unsubscribe(event, callback)

    def unsubscribe(self, event: str, callback: Subscriber) -> None:
        with self._subscribers_lock:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

    def publish(self, event: str, payload: Any) -> None:
        """
        Delivers a payload to every subscriber of `event`, in subscription order.

        A subscriber that raises is logged and skipped; the remaining subscribers
        still receive the event.
        """
        with self._publish_lock:
            with self._subscribers_lock:
                subscribers = list(self._subscribers[event])
            for callback in subscribers:
                try:
                    callback(payload)
                except Exception:
                    logger.exception(f"Subscriber {callback!r} failed while handling '{event}'")
