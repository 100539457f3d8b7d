"""Typed models for pipeline records, archive entries and narration jobs."""

from .record import (
    ArchiveEntry,
    ContentRecord,
    FeatureVector,
    NarrationJob,
    ProcessingStatus,
    ScheduledSlot,
    StatusRegressionError,
    TimestampAlreadySetError,
)

__all__ = [
    "ArchiveEntry",
    "ContentRecord",
    "FeatureVector",
    "NarrationJob",
    "ProcessingStatus",
    "ScheduledSlot",
    "StatusRegressionError",
    "TimestampAlreadySetError",
]
