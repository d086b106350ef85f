class StageError(Exception):
    """Base exception for stage handler failures."""


class StageTimeoutError(StageError):
    """Raised when a handler exceeds the stage's per-job timeout."""
