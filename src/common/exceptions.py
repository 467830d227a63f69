class ControlError(Exception):
    """Base exception for all traffic control module errors."""
    pass

class QueueShutDownError(ControlError):
    """Raised when sending to, or receiving from an empty, shut-down queue."""
    pass

class ReceiveTimeoutError(ControlError):
    """Raised when a bounded receive expires before a value arrives."""
    pass

class ConfigurationError(ControlError):
    """Raised when configuration is invalid."""
    pass
