"""Error taxonomy shared by the ticket workflow and the report exporter."""

from __future__ import annotations

from typing import Mapping

import httpx


class PortalError(Exception):
    """Base class for every error raised by the portal client."""


class ValidationError(PortalError):
    """Required input is missing or malformed. Raised before any I/O."""


class AuthorizationError(PortalError):
    """The actor lacks the role or relationship needed for an action."""


class APIError(PortalError):
    """A backend call failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{self.message}"


class NetworkError(APIError):
    """No response was received (connection refused, timeout, DNS...)."""


class AuthenticationError(APIError):
    """The bearer token is missing or expired (HTTP 401)."""


class RateLimited(APIError):
    """The backend asked the client to slow down (HTTP 429)."""


class ServerError(APIError):
    """The backend failed (5xx) or reported a failed job."""


def error_for_status(
    status_code: int, message: str, *, response: httpx.Response | None = None
) -> APIError:
    """Build the most specific :class:`APIError` for an HTTP status."""

    if status_code == 401:
        cls: type[APIError] = AuthenticationError
    elif status_code == 429:
        cls = RateLimited
    elif status_code >= 500:
        cls = ServerError
    else:
        cls = APIError
    return cls(message, status_code=status_code, response=response)


_STATUS_MESSAGES: Mapping[int, str] = {
    401: "Your session has expired. Please sign in again.",
    403: "You do not have permission to perform this action.",
    404: "The requested data could not be found.",
    429: "The server is busy. Please try again shortly.",
}


def describe_error(error: Exception) -> str:
    """Return a message suitable for showing to the user."""

    if isinstance(error, (ValidationError, AuthorizationError)):
        return str(error)
    if isinstance(error, NetworkError):
        return "Unable to reach the server."
    if isinstance(error, APIError):
        if error.status_code in _STATUS_MESSAGES:
            return _STATUS_MESSAGES[error.status_code]
        if isinstance(error, ServerError) and error.status_code is not None:
            return "Server error. Please try again later."
        return error.message or "Something went wrong."
    return "Something went wrong."
