"""
infrastructure.queue: adaptador RQ para avisos asíncronos a managers.
"""

from .errors import QueueConfigurationError, QueueEnqueueError, QueueError
from .rq_queue import RQCollectionNotifier, RQQueueConfig

__all__ = [
    "QueueConfigurationError",
    "QueueEnqueueError",
    "QueueError",
    "RQCollectionNotifier",
    "RQQueueConfig",
]
