"""Login, logout and session echo endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request

from tracechain_gateway.api.dependencies import require_roles
from tracechain_gateway.api.models import LoginRequest  # noqa: TC001
from tracechain_gateway.domain.sessions import Session  # noqa: TC001

if TYPE_CHECKING:
    from tracechain_gateway.containers import AppContainer

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login")
async def login(body: LoginRequest, request: Request) -> dict[str, object]:
    """Issue a session token for a registered identity."""
    container: AppContainer = request.app.state.container
    session = await container.auth_service.login(body.role, body.name)
    return session.to_json()


@router.get("/me")
async def me(session: Session = Depends(require_roles())) -> dict[str, object]:
    """Return the caller's session."""
    return session.to_json()


@router.post("/logout")
async def logout(
    request: Request, session: Session = Depends(require_roles())
) -> dict[str, object]:
    """Revoke the caller's token."""
    container: AppContainer = request.app.state.container
    container.auth_service.logout(session.token)
    return {"status": "logged out"}
