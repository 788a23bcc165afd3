import logging
import uuid
from datetime import datetime
from typing import Callable, Optional, Tuple

from database import Database, utc_now
from errors import (
    AccessDenied,
    CredentialRejected,
    CredentialRequired,
    EmailInUse,
    EmailInUseByOther,
    InvalidCredentials,
    NotFound,
)
from models import Priority, Task, TaskChanges, User, UserChanges
from queries import Page, compute_statistics, filter_tasks, paginate, summarize
from security import PasswordHasher, TokenManager

logger = logging.getLogger(__name__)


def check_ownership(user: User, task: Optional[Task]) -> Task:
    """
    Gate access to a task.

    A missing task is NotFound; a task owned by someone else is AccessDenied,
    so the caller learns that the id exists but is not theirs.
    """
    if task is None:
        raise NotFound("Task not found")
    if task.user_id != user.id:
        raise AccessDenied()
    return task


class AccountService:
    def __init__(self, db: Database, hasher: PasswordHasher, tokens: TokenManager):
        self.db = db
        self.hasher = hasher
        self.tokens = tokens

    def authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise CredentialRequired()
        user_id = self.tokens.verify(token)
        user = self.db.find_user_by_id(user_id)
        if user is None:
            raise CredentialRejected("User not found")
        return user

    async def register(self, name: str, email: str, password: str) -> Tuple[User, str]:
        if self.db.find_user_by_email(email) is not None:
            raise EmailInUse()

        hashed_password = await self.hasher.hash(password)
        # the store re-checks the email under its lock
        user = self.db.create_user(
            name=name,
            email=email,
            hashed_password=hashed_password,
            api_key=str(uuid.uuid4()),
        )
        logger.info("Registered user id=%s", user.id)
        return user, self.tokens.issue(user.id)

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        user = self.db.find_user_by_email(email)
        if user is None or not await self.hasher.verify(password, user.hashed_password):
            logger.info("Failed login attempt")
            raise InvalidCredentials()
        return user, self.tokens.issue(user.id)

    def get_profile(self, user: User) -> User:
        return user

    def update_profile(self, user: User, changes: UserChanges) -> User:
        if changes.email is not None:
            owner = self.db.find_user_by_email(changes.email)
            if owner is not None and owner.id != user.id:
                raise EmailInUseByOther()

        updated = self.db.update_user(user.id, changes)
        if updated is None:
            raise NotFound("User not found")
        return updated

    def delete_account(self, user: User) -> None:
        with self.db.transaction() as db:
            removed_tasks = db.delete_tasks_by_user_id(user.id)
            if not db.delete_user(user.id):
                raise NotFound("User not found")
        logger.info("Deleted user id=%s with %d tasks", user.id, removed_tasks)


class TaskService:
    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def create_task(
        self,
        user: User,
        title: str,
        description: Optional[str] = None,
        priority: Priority = Priority.MEDIUM,
    ) -> Task:
        return self.db.create_task(user.id, title, description=description, priority=priority)

    def list_tasks(
        self,
        user: User,
        completed: Optional[bool] = None,
        priority: Optional[Priority] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[Page, dict]:
        tasks = filter_tasks(self.db.find_tasks_by_user_id(user.id), completed, priority)
        return paginate(tasks, page, limit), summarize(tasks)

    def get_task(self, user: User, task_id: int) -> Task:
        return check_ownership(user, self.db.find_task_by_id(task_id))

    def update_task(self, user: User, task_id: int, changes: TaskChanges) -> Task:
        self.get_task(user, task_id)
        updated = self.db.update_task(task_id, changes)
        if updated is None:
            raise NotFound("Task not found")
        return updated

    def toggle_task(self, user: User, task_id: int) -> Task:
        self.get_task(user, task_id)
        toggled = self.db.toggle_task(task_id)
        if toggled is None:
            raise NotFound("Task not found")
        return toggled

    def delete_task(self, user: User, task_id: int) -> None:
        self.get_task(user, task_id)
        if not self.db.delete_task(task_id):
            raise NotFound("Task not found")

    def get_statistics(self, user: User) -> dict:
        return compute_statistics(self.db.find_tasks_by_user_id(user.id), self.clock())
