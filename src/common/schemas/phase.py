from pydantic import BaseModel, Field

class PhaseStatus(BaseModel):
    """
    Point-in-time view of a phase controller, for diagnostics and rendering.
    """
    controller_id: int = Field(..., ge=0, description="Unique identifier of the controller")
    phase: str = Field(..., pattern="^(RED|GREEN)$", description="Current phase name")
    running: bool = Field(..., description="Whether the phase loop thread is alive")
    queue_size: int = Field(..., ge=0, description="Values buffered in the phase queue")
    queue_order: str = Field(..., pattern="^(LIFO|FIFO)$", description="Receive order of the phase queue")
    cycle_target_us: int = Field(..., ge=0, description="Accumulated time that triggers the next flip")
    elapsed_us: int = Field(..., ge=0, description="Time accumulated since the last flip")
    ticks: int = Field(..., ge=0, description="Loop iterations so far")
    flips: int = Field(..., ge=0, description="Phase changes so far")
    dropped: int = Field(..., ge=0, description="Values discarded by a bounded queue")
