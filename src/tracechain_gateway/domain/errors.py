"""Error taxonomy shared by the ledger client, services and HTTP layer."""


class GatewayError(Exception):
    """Base error with an HTTP status used by the API layer."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def as_dict(self) -> dict[str, object]:
        """Return the JSON body rendered for this error."""
        return {"error": self.message, **self.details}


class ValidationError(GatewayError):
    """Malformed or missing request fields."""

    status_code = 400


class InvalidCredentials(GatewayError):
    """Login identity unknown or inactive."""

    status_code = 401


class RoleMismatch(InvalidCredentials):
    """Login identity exists but is registered with another role."""

    status_code = 403


class Unauthorized(GatewayError):
    """Missing, unknown or expired bearer token."""

    status_code = 401


class Forbidden(GatewayError):
    """Session role not allowed on the route."""

    status_code = 403


class NotFound(GatewayError):
    """Unknown record id."""

    status_code = 404


class ConsensusError(GatewayError):
    """Ledger rejected or failed to commit a submitted transaction."""

    status_code = 500


class LedgerResponseError(GatewayError):
    """Ledger returned a payload that is not JSON."""

    status_code = 502


class ConnectivityError(GatewayError):
    """Ledger peers or gateway unreachable."""

    status_code = 503


class LedgerTimeoutError(GatewayError):
    """Ledger connect or invoke exceeded the configured timeout."""

    status_code = 504
