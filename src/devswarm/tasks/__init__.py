"""
Task model and priority work queue.
"""

from devswarm.tasks.models import PRIORITY_ORDER, Task, TaskPriority, TaskStatus
from devswarm.tasks.task_queue import TaskQueue

__all__ = [
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TaskQueue",
    "PRIORITY_ORDER",
]
