"""Identity registry endpoints for admins."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request

from tracechain_gateway.api.dependencies import require_roles
from tracechain_gateway.api.models import UserIn  # noqa: TC001
from tracechain_gateway.domain.models import Role
from tracechain_gateway.domain.sessions import Session  # noqa: TC001

if TYPE_CHECKING:
    from tracechain_gateway.containers import AppContainer

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", dependencies=[Depends(require_roles(Role.ADMIN))])
async def list_users(request: Request) -> list[dict[str, object]]:
    """Return every registered identity."""
    container: AppContainer = request.app.state.container
    return await container.user_service.list_users()


@router.post("")
async def register_user(
    body: UserIn,
    request: Request,
    session: Session = Depends(require_roles(Role.ADMIN)),
) -> dict[str, object]:
    """Register a new identity on the ledger."""
    container: AppContainer = request.app.state.container
    return await container.user_service.register_user(
        body.to_payload(), registered_by=session.identity_name
    )
