# tests/fakes.py

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi.testclient import TestClient


class FakeClock:
    """Settable clock for the store; it only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeHasher:
    """Reversible stand-in for bcrypt so service tests stay fast."""

    async def hash(self, password: str) -> str:
        return "hashed:" + password

    async def verify(self, plain_password: str, hashed_password: str) -> bool:
        return hashed_password == "hashed:" + plain_password


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_user(
    client: TestClient,
    name: str = "Test User",
    email: str = "test@example.com",
    password: str = "123456",
) -> dict:
    res = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.text
    return res.json()["data"]


def create_task(client: TestClient, token: str, **fields) -> dict:
    body = {"title": "Test task", "description": "Test task description", "priority": "medium"}
    body.update(fields)
    res = client.post("/api/tasks", json=body, headers=auth_headers(token))
    assert res.status_code == 201, res.text
    return res.json()["data"]["task"]
