"""
auth/validation.py -- Credential pattern rules.

The same check runs at registration, login and password change. There is no
per-call-site variant on purpose: a password change re-validates the stored
username together with the new password.
"""

from __future__ import annotations

import re


class CredentialRules:
    """Full-string username and password matchers."""

    def __init__(self, username_pattern: re.Pattern, password_pattern: re.Pattern) -> None:
        self.username_pattern = username_pattern
        self.password_pattern = password_pattern

    def validate(self, username: str, password: str) -> bool:
        """Return True only if both values match their pattern end to end."""
        return (
            self.username_pattern.fullmatch(username) is not None
            and self.password_pattern.fullmatch(password) is not None
        )
