from .phase import PhaseStatus

__all__ = [
    "PhaseStatus",
]
