from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class User:
    id: int
    name: str
    email: str
    hashed_password: str
    api_key: str
    created_at: datetime
    updated_at: datetime

    def to_public(self) -> dict:
        """Outbound view of the user; the password hash never leaves the store."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "api_key": self.api_key,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class Task:
    id: int
    title: str
    description: Optional[str]
    priority: Priority
    completed: bool
    user_id: int
    created_at: datetime
    updated_at: datetime

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "completed": self.completed,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# Partial updates. Only the fields listed here can change after creation;
# id, owner and created_at are not representable.

@dataclass
class UserChanges:
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass
class TaskChanges:
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
