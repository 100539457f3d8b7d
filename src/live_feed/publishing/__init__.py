"""Publish queue, history, channel and narration jobs."""

from .channel import PublishChannel
from .history import PublishHistory
from .narration import NarrationQueue, narration_job_from_record
from .queue import PriorityQueue

__all__ = [
    "NarrationQueue",
    "PriorityQueue",
    "PublishChannel",
    "PublishHistory",
    "narration_job_from_record",
]
