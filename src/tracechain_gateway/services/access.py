"""Role checks and role-scoped result filtering."""

from collections.abc import Collection
from dataclasses import dataclass

from tracechain_gateway.domain.errors import Forbidden, Unauthorized
from tracechain_gateway.domain.models import Role
from tracechain_gateway.domain.sessions import Session
from tracechain_gateway.services.sessions import SessionStore


@dataclass
class AuthorizationGate:
    """Resolves bearer tokens and enforces per-route role sets."""

    store: SessionStore

    def authorize(
        self, token: str | None, required_roles: Collection[Role] = ()
    ) -> Session:
        """Return the caller's session or raise Unauthorized/Forbidden.

        An empty ``required_roles`` admits any authenticated caller.
        """
        session = self.store.get(token) if token else None
        if session is None:
            raise Unauthorized("unauthorized")
        if required_roles and session.role not in required_roles:
            raise Forbidden("forbidden")
        return session


def filter_collection_events(
    session: Session, events: list[dict[str, object]]
) -> list[dict[str, object]]:
    """Apply the caller's row-level view to a full collection-event listing.

    Farmers see their own collections; labs see events not yet tested.
    """
    if session.role is Role.FARMER:
        return [
            event
            for event in events
            if event.get("collectorId") == session.identity_name
        ]
    if session.role is Role.LAB:
        return [event for event in events if not event.get("qualityTestId")]
    return events
