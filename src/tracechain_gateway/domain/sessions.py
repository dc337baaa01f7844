"""Domain models for authenticated sessions."""

from dataclasses import dataclass
from datetime import datetime

from tracechain_gateway.domain.models import Role


@dataclass(frozen=True)
class Session:
    """An issued bearer token bound to a ledger identity."""

    token: str
    role: Role
    identity_name: str
    organization: str
    issued_at: datetime
    expires_at: datetime

    def to_json(self) -> dict[str, object]:
        """Return the session as returned by the auth endpoints."""
        return {
            "token": self.token,
            "role": self.role.value,
            "name": self.identity_name,
            "organization": self.organization,
            "issuedAt": self.issued_at.isoformat(),
            "expiresAt": self.expires_at.isoformat(),
        }
