"""
api/routes/auth.py -- User registration, deletion and credential check.

Routes:
  POST /add     -- register a user {username, password, access?}
  POST /delete  -- delete the user identified by {username, password}
  POST /login   -- verify {username, password}; the session is revoked again
                   before the response is sent

Errors:
  Store errors (auth.errors.AuthError) and backend errors propagate to the
  exception handlers in api/main.py, which apply the debug toggle. /login is
  the exception: any authentication failure there is a plain 401.

Handlers are sync `def` so FastAPI runs them in its thread pool; the store
is blocking (bcrypt, SQL) and must not run on the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.models import CredentialsRequest, RegisterRequest, StatusResponse
from auth.errors import AuthError
from auth.store import UserStore

logger = logging.getLogger("authstore.api")

router = APIRouter()


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


@router.post("/add", response_model=StatusResponse)
def add_user(request: Request, body: RegisterRequest) -> StatusResponse:
    """Register a new user."""
    _store(request).add(body.username, body.password, body.access)
    return StatusResponse()


@router.post("/delete", response_model=StatusResponse)
def delete_user(request: Request, body: CredentialsRequest) -> StatusResponse:
    """Delete a user. The caller proves ownership with the user's own credentials."""
    user = _store(request).login(body.username, body.password)
    user.delete()
    return StatusResponse()


@router.post("/login", response_model=StatusResponse)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Check credentials without leaving a session behind.

    Every failure reason (unknown user, wrong password, session limit) gets the
    same 401 body so the response does not reveal which one it was.
    """
    try:
        user = _store(request).login(body.username, body.password)
    except AuthError as exc:
        logger.info("login failed for %r: %s", body.username, exc)
        return JSONResponse(status_code=401, content={"status": "invalid credentials"})
    user.log_out()
    return JSONResponse(content=StatusResponse().model_dump())
