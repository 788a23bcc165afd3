import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from models import Priority, Task

RECENT_WINDOW = timedelta(days=7)


@dataclass
class Page:
    items: List[Task]
    current_page: int
    total_pages: int
    total: int
    has_next_page: bool
    has_prev_page: bool

    def pagination(self) -> Dict:
        return {
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "total_tasks": self.total,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }


def filter_tasks(
    tasks: List[Task],
    completed: Optional[bool] = None,
    priority: Optional[Priority] = None,
) -> List[Task]:
    """Exact-match filters; both apply when both are given. Order is preserved."""
    if completed is not None:
        tasks = [t for t in tasks if t.completed == completed]
    if priority is not None:
        tasks = [t for t in tasks if t.priority == priority]
    return tasks


def paginate(tasks: List[Task], page: int, limit: int) -> Page:
    # page >= 1 and limit >= 1 are enforced by request validation
    start = (page - 1) * limit
    end = start + limit
    total = len(tasks)
    return Page(
        items=tasks[start:end],
        current_page=page,
        total_pages=math.ceil(total / limit),
        total=total,
        has_next_page=end < total,
        has_prev_page=page > 1,
    )


def completion_rate(completed: int, total: int) -> int:
    if total == 0:
        return 0
    # half rounds up: 1 of 8 is 13, not 12
    return math.floor(completed * 100 / total + 0.5)


def summarize(tasks: List[Task]) -> Dict[str, int]:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.completed)
    return {
        "total": total,
        "completed": completed,
        "pending": total - completed,
        "completion_rate": completion_rate(completed, total),
    }


def count_by_priority(tasks: List[Task]) -> Dict[str, int]:
    counts = {p.value: 0 for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW)}
    for task in tasks:
        counts[task.priority.value] += 1
    return counts


def count_recent(tasks: List[Task], now: datetime) -> int:
    since = now - RECENT_WINDOW
    return sum(1 for t in tasks if t.created_at >= since)


def compute_statistics(tasks: List[Task], now: datetime) -> Dict:
    """Aggregate statistics over a user's full, unfiltered task list."""
    return {
        "overview": summarize(tasks),
        "priority": count_by_priority(tasks),
        "recent": {"last_7_days": count_recent(tasks, now)},
    }
