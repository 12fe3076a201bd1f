"""Error taxonomy. Everything the CLI reports to the user derives from NeonCtlError."""

from __future__ import annotations


class NeonCtlError(Exception):
    """Base class for errors printed by the top-level handler."""


class PointInTimeParseError(NeonCtlError):
    """Malformed point-in-time qualifier or unresolvable ^self/^parent reference."""


class NotFoundError(NeonCtlError):
    """A branch, endpoint, role, database or project could not be found."""


class AmbiguousError(NeonCtlError):
    """Several candidates matched and none was specified."""


class AuthError(NeonCtlError):
    """Login or token refresh failed."""


class LoginTimeoutError(AuthError):
    """The browser redirect did not arrive in time."""


class CredentialsError(NeonCtlError):
    """The stored credential file exists but cannot be used."""


class ApiError(NeonCtlError):
    """Non-2xx response from the control-plane API."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
