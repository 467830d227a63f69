"""
Domain protocols for the Control module.
"""
from typing import Protocol

class Clock(Protocol):
    """
    Monotonic clock reading in nanoseconds (time.monotonic_ns compatible).
    """
    def __call__(self) -> int:
        ...

class RandomSource(Protocol):
    """
    Source of cycle durations (random.Random compatible).
    """
    def randint(self, a: int, b: int) -> int:
        ...

class Sleeper(Protocol):
    """
    Pauses the loop between ticks. Returns True when the loop should stop
    (threading.Event.wait compatible).
    """
    def __call__(self, seconds: float) -> bool:
        ...
