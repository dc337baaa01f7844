"""Tests for session issuing, expiry and login."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from tests.conftest import FakeLedger
from tracechain_gateway.domain.errors import (
    InvalidCredentials,
    RoleMismatch,
    ValidationError,
)
from tracechain_gateway.domain.models import Role
from tracechain_gateway.services.ledger import ContractInvoker, LedgerPool
from tracechain_gateway.services.sessions import AuthService, SessionStore
from tracechain_gateway.services.users import UserService


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def _auth(ledger: FakeLedger, store: SessionStore | None = None) -> AuthService:
    invoker = ContractInvoker(
        pool=LedgerPool(connector=ledger), channel="ch", chaincode="cc"
    )
    return AuthService(users=UserService(invoker), store=store or SessionStore())


def test_issue_and_get_session() -> None:
    store = SessionStore()
    session = store.issue(Role.FARMER, "ravi", "Ravi Farms")

    assert store.get(session.token) == session
    assert len(session.token) >= 32
    assert session.to_json()["role"] == "farmer"


def test_tokens_are_unique() -> None:
    store = SessionStore()
    tokens = {store.issue(Role.LAB, f"lab{i}", "Labs").token for i in range(50)}
    assert len(tokens) == 50


def test_expired_session_is_evicted() -> None:
    clock = _Clock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    session = store.issue(Role.ADMIN, "admin", "Regulator")

    clock.now += timedelta(seconds=59)
    assert store.get(session.token) is not None
    clock.now += timedelta(seconds=1)
    assert store.get(session.token) is None
    assert len(store) == 0


def test_issue_purges_expired_sessions() -> None:
    clock = _Clock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    store.issue(Role.ADMIN, "admin", "Regulator")
    clock.now += timedelta(minutes=5)

    store.issue(Role.LAB, "lab1", "Herb Labs")

    assert len(store) == 1


def test_revoke() -> None:
    store = SessionStore()
    session = store.issue(Role.CUSTOMER, "c1", "")
    assert store.revoke(session.token)
    assert not store.revoke(session.token)
    assert store.get(session.token) is None


def test_login_issues_session_for_active_user() -> None:
    auth = _auth(FakeLedger())

    session = asyncio.run(auth.login("farmer", "ravi"))

    assert session.role is Role.FARMER
    assert session.identity_name == "ravi"
    assert session.organization == "Ravi Farms"
    assert auth.store.get(session.token) == session


def test_login_role_mismatch() -> None:
    auth = _auth(FakeLedger())
    with pytest.raises(RoleMismatch, match="Invalid role for user"):
        asyncio.run(auth.login("lab", "ravi"))
    assert len(auth.store) == 0


@pytest.mark.parametrize(
    "user",
    [
        None,
        {"name": "ghost", "role": "farmer", "status": "active"},
        {"userId": "USER-9", "name": "ghost", "role": "farmer", "status": "revoked"},
    ],
)
def test_login_rejects_unknown_or_inactive(user: dict[str, object] | None) -> None:
    ledger = FakeLedger()
    if user is not None:
        ledger.users["ghost"] = user

    with pytest.raises(InvalidCredentials, match="User not found or inactive"):
        asyncio.run(_auth(ledger).login("farmer", "ghost"))


def test_login_rejects_unknown_role() -> None:
    with pytest.raises(ValidationError):
        asyncio.run(_auth(FakeLedger()).login("wizard", "ravi"))


def test_logout_revokes_token() -> None:
    auth = _auth(FakeLedger())
    session = asyncio.run(auth.login("admin", "admin"))

    assert auth.logout(session.token)
    assert auth.store.get(session.token) is None
