"""
In-memory task view cache.

Held by in-process callers that drive the command dispatcher directly and
keep a task list on screen or in memory between commands. The HTTP API does
not hold one: each request builds a dispatcher without a cache and clients
read fresh views from the response. The dispatcher only mutates the cache
after the corresponding store call resolved, so a failed command leaves it
untouched.
"""

import uuid
from typing import Iterable, Optional

from teaminova.schemas import TaskView


class TaskViewState:
    """Ordered task views, newest first."""

    def __init__(self, tasks: Optional[Iterable[TaskView]] = None):
        self.tasks: list[TaskView] = list(tasks or [])

    def __len__(self) -> int:
        return len(self.tasks)

    def __iter__(self):
        return iter(self.tasks)

    def get(self, task_id: uuid.UUID) -> Optional[TaskView]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def prepend(self, task: TaskView) -> None:
        self.tasks.insert(0, task)

    def replace(self, task: TaskView) -> None:
        """Swap the cached view in place; unknown tasks are prepended."""
        for index, existing in enumerate(self.tasks):
            if existing.id == task.id:
                self.tasks[index] = task
                return
        self.prepend(task)

    def remove(self, task_id: uuid.UUID) -> None:
        self.tasks = [t for t in self.tasks if t.id != task_id]
