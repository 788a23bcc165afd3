# tests/test_services.py

import asyncio

import pytest

from database import Database
from errors import (
    AccessDenied,
    CredentialRejected,
    CredentialRequired,
    EmailInUse,
    EmailInUseByOther,
    InvalidCredentials,
    NotFound,
)
from models import Priority, TaskChanges, UserChanges
from security import TokenManager
from services import AccountService, TaskService, check_ownership

from .fakes import FakeClock


def _register(accounts: AccountService, email: str = "ana@example.com", password: str = "123456"):
    return asyncio.run(accounts.register("Ana", email, password))


# ---- Identity & Access ----

def test_authenticate_resolves_live_user(accounts: AccountService) -> None:
    user, token = _register(accounts)
    assert accounts.authenticate(token).id == user.id


@pytest.mark.parametrize("token", [None, ""])
def test_missing_credential_is_required(accounts: AccountService, token) -> None:
    with pytest.raises(CredentialRequired):
        accounts.authenticate(token)


def test_invalid_credential_is_rejected(accounts: AccountService) -> None:
    with pytest.raises(CredentialRejected):
        accounts.authenticate("not-a-jwt")


def test_token_for_deleted_user_is_rejected(accounts: AccountService) -> None:
    user, token = _register(accounts)
    accounts.delete_account(user)

    with pytest.raises(CredentialRejected):
        accounts.authenticate(token)


def test_token_for_unknown_user_is_rejected(accounts: AccountService, tokens: TokenManager) -> None:
    with pytest.raises(CredentialRejected):
        accounts.authenticate(tokens.issue(404))


def test_ownership_check(accounts: AccountService, task_service: TaskService) -> None:
    ana, _ = _register(accounts, "ana@example.com")
    bob, _ = _register(accounts, "bob@example.com")
    task = task_service.create_task(ana, "ana's task")

    assert check_ownership(ana, task) == task
    with pytest.raises(AccessDenied):
        check_ownership(bob, task)
    with pytest.raises(NotFound):
        check_ownership(ana, None)


# ---- Account lifecycle ----

def test_register_stores_hash_and_issues_token(accounts: AccountService, db: Database) -> None:
    user, token = _register(accounts)

    assert token
    assert user.hashed_password == "hashed:123456"
    assert "hashed_password" not in user.to_public()
    assert user.api_key
    assert db.find_user_by_email("ana@example.com").id == user.id


def test_register_same_email_twice(accounts: AccountService, db: Database) -> None:
    first, _ = _register(accounts)

    with pytest.raises(EmailInUse):
        asyncio.run(accounts.register("Impostor", "ana@example.com", "other-pass"))

    stored = db.find_user_by_id(first.id)
    assert stored.name == "Ana"
    assert stored.hashed_password == "hashed:123456"


def test_login_succeeds_with_right_password(accounts: AccountService) -> None:
    user, _ = _register(accounts)
    logged_in, token = asyncio.run(accounts.login("ana@example.com", "123456"))

    assert logged_in.id == user.id
    assert accounts.authenticate(token).id == user.id


@pytest.mark.parametrize(
    "email,password",
    [("ana@example.com", "wrong-password"), ("nobody@example.com", "123456")],
)
def test_login_failures_look_the_same(accounts: AccountService, email: str, password: str) -> None:
    _register(accounts)

    with pytest.raises(InvalidCredentials) as excinfo:
        asyncio.run(accounts.login(email, password))
    assert excinfo.value.message == "Invalid credentials"


def test_update_profile(accounts: AccountService) -> None:
    user, _ = _register(accounts)

    updated = accounts.update_profile(user, UserChanges(name="Ana Maria", email="ana.maria@example.com"))

    assert updated.name == "Ana Maria"
    assert updated.email == "ana.maria@example.com"


def test_update_profile_to_own_email(accounts: AccountService) -> None:
    user, _ = _register(accounts)
    assert accounts.update_profile(user, UserChanges(email="ana@example.com")).email == "ana@example.com"


def test_update_profile_to_taken_email(accounts: AccountService) -> None:
    _register(accounts, "ana@example.com")
    bob, _ = _register(accounts, "bob@example.com")

    with pytest.raises(EmailInUseByOther):
        accounts.update_profile(bob, UserChanges(email="ana@example.com"))


def test_update_profile_of_missing_user(accounts: AccountService) -> None:
    user, _ = _register(accounts)
    accounts.delete_account(user)

    with pytest.raises(NotFound):
        accounts.update_profile(user, UserChanges(name="Ghost"))


def test_delete_account_cascades(accounts: AccountService, task_service: TaskService, db: Database) -> None:
    ana, _ = _register(accounts, "ana@example.com")
    bob, _ = _register(accounts, "bob@example.com")
    ana_tasks = [task_service.create_task(ana, f"task {i}") for i in range(3)]
    bob_task = task_service.create_task(bob, "bob's task")

    accounts.delete_account(ana)

    assert db.find_user_by_id(ana.id) is None
    for task in ana_tasks:
        assert db.find_task_by_id(task.id) is None
        with pytest.raises(NotFound):
            task_service.get_task(bob, task.id)
    assert db.find_tasks_by_user_id(ana.id) == []
    assert db.find_task_by_id(bob_task.id) is not None

    # the email is free again
    again, _ = _register(accounts, "ana@example.com")
    assert again.id != ana.id


def test_delete_missing_account(accounts: AccountService) -> None:
    user, _ = _register(accounts)
    accounts.delete_account(user)

    with pytest.raises(NotFound):
        accounts.delete_account(user)


# ---- Tasks ----

def test_other_users_task_is_denied_not_hidden(accounts: AccountService, task_service: TaskService) -> None:
    ana, _ = _register(accounts, "ana@example.com")
    bob, _ = _register(accounts, "bob@example.com")
    task = task_service.create_task(ana, "private")

    with pytest.raises(AccessDenied):
        task_service.get_task(bob, task.id)
    with pytest.raises(AccessDenied):
        task_service.update_task(bob, task.id, TaskChanges(title="hijacked"))
    with pytest.raises(AccessDenied):
        task_service.toggle_task(bob, task.id)
    with pytest.raises(AccessDenied):
        task_service.delete_task(bob, task.id)

    page, _ = task_service.list_tasks(bob)
    assert page.items == []
    assert task_service.get_task(ana, task.id).title == "private"
    assert task_service.get_task(ana, task.id).completed is False


def test_missing_task_is_not_found(accounts: AccountService, task_service: TaskService) -> None:
    ana, _ = _register(accounts)
    with pytest.raises(NotFound):
        task_service.get_task(ana, 999)
    with pytest.raises(NotFound):
        task_service.delete_task(ana, 999)


def test_toggle_is_a_pure_flip(accounts: AccountService, task_service: TaskService) -> None:
    ana, _ = _register(accounts)
    task = task_service.create_task(ana, "flip")

    states = [task_service.toggle_task(ana, task.id).completed for _ in range(4)]

    assert states == [True, False, True, False]


def test_list_filters_and_pages(accounts: AccountService, task_service: TaskService, clock: FakeClock) -> None:
    ana, _ = _register(accounts)
    created = []
    for priority in (Priority.HIGH, Priority.LOW, Priority.HIGH, Priority.MEDIUM, Priority.HIGH):
        created.append(task_service.create_task(ana, priority.value, priority=priority))
        clock.advance(seconds=1)
    task_service.toggle_task(ana, created[0].id)

    page, summary = task_service.list_tasks(ana, priority=Priority.HIGH, page=1, limit=2)

    assert [t.id for t in page.items] == [created[4].id, created[2].id]
    assert page.total == 3
    assert page.has_next_page is True
    assert summary == {"total": 3, "completed": 1, "pending": 2, "completion_rate": 33}

    page, _ = task_service.list_tasks(ana, completed=True, priority=Priority.HIGH)
    assert [t.id for t in page.items] == [created[0].id]


def test_statistics_ignore_list_filters(accounts: AccountService, task_service: TaskService, clock: FakeClock) -> None:
    ana, _ = _register(accounts)
    old = task_service.create_task(ana, "old", priority=Priority.LOW)
    clock.advance(days=10)
    for priority in (Priority.HIGH, Priority.HIGH, Priority.MEDIUM):
        task_service.create_task(ana, "new", priority=priority)
    task_service.toggle_task(ana, old.id)

    stats = task_service.get_statistics(ana)

    assert stats["overview"] == {"total": 4, "completed": 1, "pending": 3, "completion_rate": 25}
    assert stats["priority"] == {"high": 2, "medium": 1, "low": 1}
    assert stats["recent"] == {"last_7_days": 3}
