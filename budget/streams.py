import logging
import threading
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by ``ValueStream.subscribe``."""

    def __init__(self, stream: "ValueStream", callback: Callable):
        self._stream = stream
        self._callback = callback
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._stream._remove(self)


class ValueStream(Generic[T]):
    """Holds the latest value and pushes every change to its subscribers.

    A new subscriber is called at once with the current value, then with each
    emitted value in emission order until its subscription is cancelled.
    """

    def __init__(self, initial: T):
        self._value = initial
        self._subscriptions: List[Subscription] = []
        self._lock = threading.RLock()

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        with self._lock:
            subscription = Subscription(self, callback)
            self._subscriptions.append(subscription)
            self._deliver(subscription, self._value)
        return subscription

    def emit(self, value: T) -> None:
        # delivery happens under the lock so concurrent emits stay ordered
        with self._lock:
            self._value = value
            for subscription in list(self._subscriptions):
                self._deliver(subscription, value)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _deliver(self, subscription: Subscription, value: T) -> None:
        if not subscription.active:
            return
        try:
            subscription._callback(value)
        except Exception:
            logger.exception(
                "subscriber %r failed", getattr(subscription._callback, "__name__", None)
            )
