from dataclasses import dataclass
from typing import Dict
import threading
import time

@dataclass
class PhaseMetrics:
    """Phase loop and consumer counters"""
    ticks: int
    flips: int
    greens_received: int
    values_discarded: int
    uptime_seconds: float
    
    def to_dict(self) -> Dict:
        return {
            'ticks': self.ticks,
            'flips': self.flips,
            'greens_received': self.greens_received,
            'values_discarded': self.values_discarded,
            'uptime_seconds': self.uptime_seconds
        }


class MetricsCollector:
    """Collects phase loop and consumer counters (thread-safe)"""
    
    def __init__(self):
        self._lock = threading.Lock()
        self.ticks = 0
        self.flips = 0
        self.greens_received = 0
        self.values_discarded = 0  # non-GREEN values skipped by wait_for_green
        self.start_time = time.monotonic()
    
    def record_tick(self):
        with self._lock:
            self.ticks += 1
    
    def record_flip(self):
        with self._lock:
            self.flips += 1
    
    def record_received(self, is_green: bool):
        with self._lock:
            if is_green:
                self.greens_received += 1
            else:
                self.values_discarded += 1
    
    def get_metrics(self) -> PhaseMetrics:
        with self._lock:
            return PhaseMetrics(
                ticks=self.ticks,
                flips=self.flips,
                greens_received=self.greens_received,
                values_discarded=self.values_discarded,
                uptime_seconds=time.monotonic() - self.start_time
            )
