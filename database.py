import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional

from errors import EmailInUse, EmailInUseByOther, NotFound
from models import Priority, Task, TaskChanges, User, UserChanges

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Database:
    """
    In-memory store for users and tasks, lost when the process exits.

    Every mutation holds the store lock for its whole read-modify-write, so
    concurrent requests touching the same record never interleave inside a
    single operation. Records handed out are copies; change them through
    update_user / update_task.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self._clock = clock
        self._lock = threading.RLock()
        self._users: Dict[int, User] = {}
        self._tasks: Dict[int, Task] = {}
        self._next_user_id = 1
        self._next_task_id = 1

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Hold the store lock across several operations."""
        with self._lock:
            yield self

    # Users

    def create_user(self, name: str, email: str, hashed_password: str, api_key: str) -> User:
        with self._lock:
            if self._find_user_by_email(email) is not None:
                raise EmailInUse()
            now = self._clock()
            user = User(
                id=self._next_user_id,
                name=name,
                email=email,
                hashed_password=hashed_password,
                api_key=api_key,
                created_at=now,
                updated_at=now,
            )
            self._next_user_id += 1
            self._users[user.id] = user
            logger.debug("Stored user id=%s", user.id)
            return replace(user)

    def find_user_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user = self._find_user_by_email(email)
            return replace(user) if user else None

    def _find_user_by_email(self, email: str) -> Optional[User]:
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    def update_user(self, user_id: int, changes: UserChanges) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            if changes.email is not None:
                owner = self._find_user_by_email(changes.email)
                if owner is not None and owner.id != user_id:
                    raise EmailInUseByOther()
                user.email = changes.email
            if changes.name is not None:
                user.name = changes.name
            user.updated_at = self._clock()
            return replace(user)

    def delete_user(self, user_id: int) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None

    # Tasks

    def create_task(
        self,
        user_id: int,
        title: str,
        description: Optional[str] = None,
        priority: Priority = Priority.MEDIUM,
    ) -> Task:
        with self._lock:
            if user_id not in self._users:
                raise NotFound("User not found")
            now = self._clock()
            task = Task(
                id=self._next_task_id,
                title=title,
                description=description,
                priority=priority,
                completed=False,
                user_id=user_id,
                created_at=now,
                updated_at=now,
            )
            self._next_task_id += 1
            self._tasks[task.id] = task
            return replace(task)

    def find_task_by_id(self, task_id: int) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return replace(task) if task else None

    def find_tasks_by_user_id(self, user_id: int) -> List[Task]:
        """Tasks owned by user_id, newest first (created_at, then id, descending)."""
        with self._lock:
            tasks = [replace(t) for t in self._tasks.values() if t.user_id == user_id]
        tasks.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        return tasks

    def update_task(self, task_id: int, changes: TaskChanges) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            if changes.title is not None:
                task.title = changes.title
            if changes.description is not None:
                task.description = changes.description
            if changes.priority is not None:
                task.priority = changes.priority
            if changes.completed is not None:
                task.completed = changes.completed
            task.updated_at = self._clock()
            return replace(task)

    def toggle_task(self, task_id: int) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            task.completed = not task.completed
            task.updated_at = self._clock()
            return replace(task)

    def delete_task(self, task_id: int) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    def delete_tasks_by_user_id(self, user_id: int) -> int:
        with self._lock:
            ids = [t.id for t in self._tasks.values() if t.user_id == user_id]
            for task_id in ids:
                del self._tasks[task_id]
            return len(ids)
