"""
API request and response models for authstore REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from auth/models.py, which owns the internal
domain representation. Route handlers map between the two.
"""

from pydantic import BaseModel, ConfigDict

from auth.models import USER

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body for POST /login and POST /delete.

    No pattern constraints here: the store applies its own credential rules,
    and those are configurable per deployment.
    """

    username: str
    password: str


class RegisterRequest(CredentialsRequest):
    """Body for POST /add. access defaults to USER, never to ADMIN."""

    access: int = USER


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class StatusResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "success"


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
