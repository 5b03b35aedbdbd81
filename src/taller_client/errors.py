"""Error types for taller-client flows."""

from __future__ import annotations

from dataclasses import dataclass


class TallerClientError(RuntimeError):
    """Base error for taller-client operations."""


class ConfigError(TallerClientError):
    """Raised on invalid runtime configuration."""


class AuthError(TallerClientError):
    """Raised when the login flow returns an unusable response."""


class RequestError(TallerClientError):
    """Raised when a backend request fails."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        self.status = status
        self.message = message
        super().__init__(message)


class NetworkError(RequestError):
    """The request never reached the server or no response arrived."""


class HttpError(RequestError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message, status=status)


class ParseError(RequestError):
    """A success body was expected to be JSON and was not."""


class EncodeError(RequestError):
    """A request body could not be encoded as JSON; nothing was sent."""


@dataclass(frozen=True)
class FieldIssue:
    """One failed field check."""

    field: str
    message: str


class ValidationError(TallerClientError):
    """Client-side form validation failure; never reaches the network."""

    def __init__(self, issues: list[FieldIssue]) -> None:
        self.issues = list(issues)
        detail = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(f"invalid form data: {detail}" if detail else "invalid form data")

    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]
