"""
auth/models.py -- Domain dataclass and access-level constants.

Pattern: Data class (pure data container, zero logic). The store owns every
UserRecord; callers only ever see records through a UserHandle.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Access levels
#
# Lower value = more privilege. These four are reserved conventions; any other
# integer is a valid level and orders the same way.
# ---------------------------------------------------------------------------

DELETED = -2  # never passes a check
PUBLIC = -1  # requested level that always passes
ADMIN = 0
USER = 1


@dataclass(eq=False)
class UserRecord:
    """A registered user as held by the store's registry.

    eq=False keeps identity comparison: the session table and the validity
    check compare records with `is`, never by field values.

    password is a bcrypt hash from the moment the record enters the registry.
    session is the most recently minted session identifier ("" = none); it is
    not proof of a live session, the session table is.

    variables is per-user scratch data for the host application. It is never
    persisted and becomes None once the record is deleted.
    """

    username: str
    password: str
    access: int = USER
    session: str = ""
    variables: dict[str, Any] | None = field(default_factory=dict)
