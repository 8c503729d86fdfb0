"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, or already used.

    Used for both magic link tokens and session tokens.
    """


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limited. Retry after {retry_after_seconds} seconds.")


class UserAlreadyExistsError(AuthError):
    """Signup with an email that already has an account."""


class SessionExpiredError(AuthError):
    """Session is unknown or has expired; the user must log in again."""


class UserInactiveError(AuthError):
    """User account is deactivated. Login not permitted."""
