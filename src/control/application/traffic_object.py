"""
Base class for simulated objects that run worker threads.
"""
import itertools
import threading
from typing import Callable, List

from ...common.logging import setup_logger

logger = setup_logger(__name__)

_id_counter = itertools.count()


class TrafficObject:
    """
    Owns the threads spawned by a simulated object and joins them on stop.
    Threads are daemons, so an object that is never stopped does not keep
    the interpreter alive.
    """

    def __init__(self):
        self.id = next(_id_counter)
        self.threads: List[threading.Thread] = []
        self.stop_event = threading.Event()

    def start_thread(self, target: Callable[[], None], name: str) -> threading.Thread:
        """Spawns and registers a worker thread."""
        thread = threading.Thread(
            target=target,
            name=f"{name}-{self.id}",
            daemon=True
        )
        self.threads.append(thread)
        thread.start()
        return thread

    def join_threads(self, timeout: float = 2.0) -> bool:
        """
        Waits for every registered thread.
        Returns False if any thread is still alive after the timeout.
        """
        all_stopped = True
        for thread in self.threads:
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Thread {thread.name} did not stop within {timeout:.1f}s")
                all_stopped = False
        self.threads = [t for t in self.threads if t.is_alive()]
        return all_stopped

    def stop(self, timeout: float = 2.0) -> bool:
        """Signals workers to stop and joins them."""
        self.stop_event.set()
        return self.join_threads(timeout=timeout)

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self.threads)
