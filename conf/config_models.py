from dataclasses import dataclass, field
from typing import Optional

@dataclass
class QueueConfig:
    order: str = "LIFO"  # LIFO | FIFO
    capacity: Optional[int] = None  # None = unbounded
    overflow: str = "DROP_OLDEST"  # DROP_OLDEST | DROP_NEWEST | BLOCK
    drop_log_every: int = 1000

@dataclass
class TimingConfig:
    min_cycle_us: int = 4_000_000
    max_cycle_us: int = 6_000_000
    tick_interval_s: float = 0.001
    seed: Optional[int] = None

@dataclass
class ControlConfig:
    queue: QueueConfig = field(default_factory=QueueConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    log_level: str = "INFO"
    consumers: int = 2  # demo script only
    run_seconds: float = 15.0  # demo script only
