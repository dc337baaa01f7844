"""Bearer-token sessions and the login flow."""

import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from tracechain_gateway.domain.errors import (
    InvalidCredentials,
    RoleMismatch,
    ValidationError,
)
from tracechain_gateway.domain.models import Role
from tracechain_gateway.domain.sessions import Session
from tracechain_gateway.services.users import UserService


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionStore:
    """In-memory token to session map with expiry."""

    ttl_seconds: int = 8 * 60 * 60
    clock: Callable[[], datetime] = _utcnow
    _sessions: dict[str, Session] = field(default_factory=dict, init=False)

    def issue(self, role: Role, identity_name: str, organization: str) -> Session:
        """Create and store a session under a fresh token."""
        self.purge_expired()
        token = secrets.token_urlsafe(32)
        while token in self._sessions:
            token = secrets.token_urlsafe(32)
        issued_at = self.clock()
        session = Session(
            token=token,
            role=role,
            identity_name=identity_name,
            organization=organization,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=self.ttl_seconds),
        )
        self._sessions[token] = session
        return session

    def get(self, token: str) -> Session | None:
        """Return a live session, evicting it if it has expired."""
        session = self._sessions.get(token)
        if session is None:
            return None
        if self.clock() >= session.expires_at:
            self._sessions.pop(token, None)
            return None
        return session

    def revoke(self, token: str) -> bool:
        """Drop a session; returns whether it existed."""
        return self._sessions.pop(token, None) is not None

    def purge_expired(self) -> int:
        """Evict every expired session and return how many were removed."""
        now = self.clock()
        expired = [
            token
            for token, session in self._sessions.items()
            if now >= session.expires_at
        ]
        for token in expired:
            del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


@dataclass
class AuthService:
    """Checks identities against the ledger registry and issues sessions."""

    users: UserService
    store: SessionStore

    async def login(self, role: str, name: str) -> Session:
        """Issue a session for a registered, active identity with this role."""
        try:
            requested = Role(role)
        except ValueError as exc:
            raise ValidationError("invalid role") from exc
        if not name or not name.strip():
            raise ValidationError("name is required")
        user = await self.users.find_user(name.strip())
        if user is None or not user.get("userId") or user.get("status") != "active":
            raise InvalidCredentials("User not found or inactive")
        if user.get("role") != requested.value:
            raise RoleMismatch("Invalid role for user")
        return self.store.issue(
            requested,
            identity_name=str(user.get("name") or name.strip()),
            organization=str(user.get("organization") or ""),
        )

    def logout(self, token: str) -> bool:
        """Revoke a session token."""
        return self.store.revoke(token)
