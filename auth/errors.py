"""
auth/errors.py -- Exception hierarchy for store and handle operations.

Every store/handle failure is raised to the immediate caller as one of these.
There is no retry logic anywhere. Backend I/O errors (sqlalchemy.exc.*) are
not reclassified and propagate as-is.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every authstore failure."""


class InvalidCredentials(AuthError):
    def __init__(
        self, message: str = "the username or password is empty or contained characters that are not allowed"
    ):
        super().__init__(message)


class NotFound(AuthError):
    def __init__(self, message: str = "not found"):
        super().__init__(message)


class AlreadyExists(AuthError):
    def __init__(self, message: str = "user already exists"):
        super().__init__(message)


class AlreadyAuthenticated(AuthError):
    """Duplicate session identifier, or the user's session ceiling is reached."""

    def __init__(self, message: str = "session identifier is already in use"):
        super().__init__(message)


class SessionLimitExceeded(AlreadyAuthenticated):
    def __init__(self, message: str = "user already signed in, session limit reached"):
        super().__init__(message)


class NotAllowed(AuthError):
    def __init__(self, message: str = "this action is not permitted"):
        super().__init__(message)


class HashingFailure(AuthError):
    def __init__(self, message: str = "password hashing failed"):
        super().__init__(message)


class VerificationFailed(AuthError):
    def __init__(self, message: str = "password does not match"):
        super().__init__(message)


class StoreClosed(AuthError):
    def __init__(self, message: str = "store has been closed"):
        super().__init__(message)
