"""
auth/tokens.py -- Password hashing and session identifier utilities.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper) with a fixed cost
       factor. Bcrypt's cost makes brute-forcing a leaked hash expensive.
       Any error raised by bcrypt is reported as HashingFailure so the store
       never has to know which library sits underneath.

  Session identifiers: uuid4 strings. They are opaque to the store; callers
       may also supply their own identifier at login.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid

import bcrypt

from auth.errors import HashingFailure

logger = logging.getLogger("authstore.tokens")

_BCRYPT_ROUNDS = 10

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises HashingFailure if bcrypt rejects the input (recent bcrypt releases
    refuse passwords longer than 72 bytes instead of truncating them).
    """
    try:
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=_BCRYPT_ROUNDS)).decode("utf-8")
    except ValueError as exc:
        logger.warning("bcrypt rejected password: %s", exc)
        raise HashingFailure(f"password hashing failed: {exc}") from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or oversized input -- treat as a mismatch.
        return False


# ---------------------------------------------------------------------------
# Session identifiers
# ---------------------------------------------------------------------------


def new_session_id() -> str:
    return str(uuid.uuid4())
