"""Task registry - user defined task categories in display order"""

from typing import Iterable, Iterator, List, Optional

from pydantic import ValidationError

from timeflow.domain.models import BREAK_TASK_ID, TASK_COLORS, Task


class TaskRegistry:
    """
    Ordered collection of tasks.

    Deleting a task leaves existing entries pointing at its id; consumers
    resolve such ids to an "unknown task" placeholder.
    """

    BREAK_NAME = "Break"
    UNKNOWN_NAME = "Unknown task"

    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: List[Task] = list(tasks or [])

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks))

    def __contains__(self, task_id: object) -> bool:
        return any(t.id == task_id for t in self._tasks)

    def to_list(self) -> List[Task]:
        return list(self._tasks)

    def add(self, name: str, color: Optional[str] = None) -> Optional[Task]:
        """Create a task. Invalid names (blank or too long) are ignored and return None."""
        if not name or not name.strip():
            return None
        try:
            task = Task(name=name, color=color or TASK_COLORS[0])
        except ValidationError:
            return None
        self._tasks.append(task)
        return task

    def delete(self, task_id: str) -> bool:
        remaining = [t for t in self._tasks if t.id != task_id]
        removed = len(remaining) != len(self._tasks)
        self._tasks = remaining
        return removed

    def get(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._tasks if t.id == task_id), None)

    def resolve_name(self, task_id: str) -> str:
        if task_id == BREAK_TASK_ID:
            return self.BREAK_NAME
        task = self.get(task_id)
        return task.name if task else self.UNKNOWN_NAME
