"""
Thread-safe blocking handoff queue.
One lock guards the buffer; a condition wakes one receiver per send.
"""
import threading
import time
from collections import deque
from typing import Deque, Generic, Optional, TypeVar

from ..domain import QueueOrder, OverflowPolicy
from ...common.exceptions import QueueShutDownError, ReceiveTimeoutError, ConfigurationError
from ...common.logging import setup_logger

T = TypeVar("T")

logger = setup_logger(__name__)


class BlockingQueue(Generic[T]):
    """
    Handoff channel between a producer thread and one or more consumers.

    - send() never blocks unless a capacity is set with OverflowPolicy.BLOCK.
    - receive() blocks until a value is available. With the default LIFO
      order the most recently sent value is returned first.
    - Unbounded by default: if consumers fall behind the buffer grows
      without limit.
    """

    def __init__(
        self,
        order: QueueOrder = QueueOrder.LIFO,
        capacity: Optional[int] = None,
        overflow: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        drop_log_every: int = 1000
    ):
        if capacity is not None and capacity <= 0:
            raise ConfigurationError(f"Queue capacity must be positive, got {capacity}")

        self.order = order
        self.capacity = capacity
        self.overflow = overflow
        self.drop_log_every = drop_log_every

        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._shut_down = False
        self._dropped = 0

    def send(self, value: T) -> bool:
        """
        Appends a value and wakes one waiting receiver.
        Returns False if the value was discarded by the overflow policy.
        """
        with self._lock:
            if self._shut_down:
                raise QueueShutDownError("send() on a shut-down queue")

            if self._is_full():
                if self.overflow is OverflowPolicy.DROP_NEWEST:
                    self._record_drop()
                    return False
                if self.overflow is OverflowPolicy.DROP_OLDEST:
                    self._items.popleft()
                    self._record_drop()
                else:
                    while self._is_full() and not self._shut_down:
                        self._not_full.wait()
                    if self._shut_down:
                        raise QueueShutDownError("queue shut down while send() was blocked")

            self._items.append(value)
            self._not_empty.notify()
            return True

    def receive(self, timeout: Optional[float] = None) -> T:
        """
        Blocks until a value is available and removes it.

        :param timeout: Seconds to wait. None waits indefinitely.
        :raises ReceiveTimeoutError: if the timeout expires first
        :raises QueueShutDownError: if the queue is shut down and empty
        """
        with self._lock:
            if timeout is None:
                while not self._items:
                    if self._shut_down:
                        raise QueueShutDownError("receive() on a shut-down queue")
                    self._not_empty.wait()
            else:
                if timeout < 0:
                    raise ValueError("'timeout' must be a non-negative number")
                deadline = time.monotonic() + timeout
                while not self._items:
                    if self._shut_down:
                        raise QueueShutDownError("receive() on a shut-down queue")
                    remaining = deadline - time.monotonic()
                    if remaining <= 0.0:
                        raise ReceiveTimeoutError(f"No value received within {timeout:.3f}s")
                    self._not_empty.wait(remaining)

            if self.order is QueueOrder.LIFO:
                value = self._items.pop()
            else:
                value = self._items.popleft()
            self._not_full.notify()
            return value

    def shutdown(self):
        """
        Closes the queue and wakes every blocked sender and receiver.
        Values already buffered can still be received.
        """
        with self._lock:
            self._shut_down = True
            self._not_empty.notify_all()
            self._not_full.notify_all()

    def clear(self) -> int:
        """Discards all buffered values. Returns how many were removed."""
        with self._lock:
            count = len(self._items)
            self._items.clear()
            self._not_full.notify_all()
            return count

    def qsize(self) -> int:
        with self._lock:
            return len(self._items)

    def empty(self) -> bool:
        with self._lock:
            return not self._items

    @property
    def is_shut_down(self) -> bool:
        with self._lock:
            return self._shut_down

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def _is_full(self) -> bool:
        return self.capacity is not None and len(self._items) >= self.capacity

    def _record_drop(self):
        # Caller holds the lock
        self._dropped += 1
        if self._dropped % self.drop_log_every == 0:
            logger.warning(f"Queue congested. Dropped {self._dropped} values so far.")
