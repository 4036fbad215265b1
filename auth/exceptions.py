"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication errors."""


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, or already used.

    Used for both invite tokens and session tokens.
    """


class SessionExpiredError(AuthError):
    """Session has expired and user must re-authenticate."""
