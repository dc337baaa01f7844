"""Bearer-token dependencies enforcing role checks."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from fastapi import Header, Request

if TYPE_CHECKING:
    from tracechain_gateway.containers import AppContainer
    from tracechain_gateway.domain.models import Role
    from tracechain_gateway.domain.sessions import Session


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer`` header value."""
    if not authorization:
        return None
    token = authorization.removeprefix("Bearer ").strip()
    return token or None


def require_roles(*roles: Role) -> Callable[..., Awaitable[Session]]:
    """Build a dependency admitting sessions holding one of ``roles``.

    With no roles, any authenticated session is admitted.
    """

    async def dependency(
        request: Request, authorization: str | None = Header(default=None)
    ) -> Session:
        container: AppContainer = request.app.state.container
        return container.authorization_gate.authorize(
            bearer_token(authorization), roles
        )

    return dependency
