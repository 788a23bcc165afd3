# tests/conftest.py

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import create_app
from config import Settings
from database import Database
from security import TokenManager
from services import AccountService, TaskService

from .fakes import FakeClock, FakeHasher


@pytest.fixture()
def settings() -> Settings:
    """Test settings: fixed secret, cheap bcrypt, no rate limiting."""
    return Settings(environment="test", secret_key="test-jwt-secret-key", bcrypt_rounds=4)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def db(clock: FakeClock) -> Database:
    return Database(clock=clock)


@pytest.fixture()
def tokens(settings: Settings) -> TokenManager:
    return TokenManager.from_settings(settings)


@pytest.fixture()
def accounts(db: Database, tokens: TokenManager) -> AccountService:
    return AccountService(db, FakeHasher(), tokens)


@pytest.fixture()
def task_service(db: Database, clock: FakeClock) -> TaskService:
    return TaskService(db, clock=clock)


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    # a fresh store per test; the real clock so tokens and "recent" match wall time
    return create_app(settings, Database())


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c
