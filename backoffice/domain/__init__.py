"""Domain layer definitions."""

from .batches import (
    ActivityLogEntry,
    BatchJob,
    JobFinalizedError,
    ResultRecord,
    Subject,
    UserProfile,
)

__all__ = [
    "ActivityLogEntry",
    "BatchJob",
    "JobFinalizedError",
    "ResultRecord",
    "Subject",
    "UserProfile",
]
