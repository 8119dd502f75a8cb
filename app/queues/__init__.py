"""Redis-backed async job queues"""
from app.queues.base_queue import BaseQueueService
from app.queues.processors import JobKind, JobProcessor, build_processors
from app.queues.queue_manager import QueueManager

__all__ = [
    "BaseQueueService",
    "JobKind",
    "JobProcessor",
    "QueueManager",
    "build_processors",
]
