class JobStoreError(Exception):
    """Base exception for all job store errors."""


class CorruptSnapshotError(JobStoreError):
    """Raised when persisted job state cannot be decoded."""


class DuplicateJobError(JobStoreError):
    """Raised when inserting a record whose source_path already exists."""


class InvalidStatusTransitionError(Exception):
    """Raised when a job status change is not allowed by the state machine."""
