"""Infrastructure layer exports."""

from .batches import BatchJobRepository, InMemoryBatchJobRepository
from .records import (
    ActivityLogRepository,
    InMemoryActivityLogRepository,
    InMemoryProfileRepository,
    ProfileRepository,
)
from .results import InMemoryResultRepository, ResultRepository

__all__ = [
    "ActivityLogRepository",
    "BatchJobRepository",
    "InMemoryActivityLogRepository",
    "InMemoryBatchJobRepository",
    "InMemoryProfileRepository",
    "InMemoryResultRepository",
    "ProfileRepository",
    "ResultRepository",
]
