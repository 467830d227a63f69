"""
Domain entities for the Control module.
"""
from dataclasses import dataclass
from enum import Enum

class Phase(Enum):
    RED = "RED"
    GREEN = "GREEN"

    def flipped(self) -> "Phase":
        return Phase.GREEN if self is Phase.RED else Phase.RED

class QueueOrder(Enum):
    """
    Which end of the buffer a receive pops from.
    LIFO hands out the most recently sent value first.
    """
    LIFO = "LIFO"
    FIFO = "FIFO"

class OverflowPolicy(Enum):
    """
    What a bounded queue does with a send when it is full.
    """
    DROP_OLDEST = "DROP_OLDEST"
    DROP_NEWEST = "DROP_NEWEST"
    BLOCK = "BLOCK"

@dataclass
class PhaseChange:
    """
    A flip observed by the phase loop.
    """
    previous: Phase
    current: Phase
    elapsed_us: int  # accumulated time that triggered the flip
    next_target_us: int
