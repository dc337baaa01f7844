"""Ledger-side identity registry."""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from tracechain_gateway.domain.errors import GatewayError, NotFound, ValidationError
from tracechain_gateway.domain.models import Role
from tracechain_gateway.services.ledger import ContractInvoker

_logger = logging.getLogger(__name__)


@dataclass
class UserService:
    """Registers and looks up users stored on the ledger."""

    invoker: ContractInvoker

    async def find_user(self, name: str) -> dict[str, object] | None:
        """Return the registry entry for a name, or None if unknown."""
        try:
            user = await self.invoker.evaluate_transaction("queryUser", name)
        except NotFound:
            return None
        return user if isinstance(user, dict) and user else None

    async def list_users(self) -> list[dict[str, object]]:
        """Return every registered user, or [] when the ledger read fails."""
        try:
            users = await self.invoker.evaluate_transaction("queryAllUsers", empty=list)
        except GatewayError as exc:
            _logger.warning("Failed to list users: %s", exc)
            return []
        return users if isinstance(users, list) else []

    async def register_user(
        self, payload: dict[str, object], registered_by: str
    ) -> dict[str, object]:
        """Register a new active user."""
        missing = [
            key for key in ("name", "role", "organization") if not payload.get(key)
        ]
        if missing:
            raise ValidationError(
                "Name, role, and organization are required", {"missing": missing}
            )
        if payload["role"] not in {role.value for role in Role}:
            raise ValidationError("invalid role")
        now = datetime.now(tz=UTC)
        user = {
            **payload,
            "userId": payload.get("userId") or f"USER-{int(now.timestamp() * 1000)}",
            "status": "active",
            "registeredAt": now.isoformat(),
            "registeredBy": registered_by,
        }
        try:
            result = await self.invoker.submit_transaction(
                "registerUser", json.dumps(user)
            )
        except GatewayError:
            _logger.warning("User registration failed for %s", payload.get("name"))
            raise
        if isinstance(result.payload, dict) and result.payload:
            return result.payload
        return user
