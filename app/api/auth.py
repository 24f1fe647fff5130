"""Sign-in, OAuth, session and sign-out endpoints.

All of them act on the SessionManager of the calling browser (``sid``
cookie).  Errors are AppError subclasses mapped to status codes in
app/main.py: bad credentials 401, identity without a usable profile 403,
provider or store outage 503.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from app.api.dependencies import get_session_manager, set_session_cookie
from app.api.schemas import SessionOut, session_out
from app.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginIn(BaseModel):
    email: str
    password: str | None = None


class RestoreIn(BaseModel):
    access_token: str | None = None


@router.post("/login", response_model=SessionOut)
async def login(
    payload: LoginIn,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionOut:
    state = await manager.login(payload.email, payload.password or "")
    return session_out(state)


@router.get("/oauth/{provider}")
async def oauth_start(
    provider: str,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> RedirectResponse:
    url = await manager.login_with_oauth(provider)
    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    # A returned Response bypasses the dependency's cookie; set it here too.
    set_session_cookie(response, manager.client_key)
    return response


@router.get("/callback", response_model=SessionOut)
async def oauth_callback(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    code: Annotated[str, Query(min_length=1)],
    state: Annotated[str | None, Query()] = None,
) -> SessionOut:
    return session_out(await manager.complete_oauth(code, state))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> None:
    await manager.logout()


@router.get("/session", response_model=SessionOut)
async def current_session(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionOut:
    return session_out(manager.state)


@router.post("/session/restore", response_model=SessionOut)
async def restore_session(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    payload: RestoreIn | None = None,
) -> SessionOut:
    token = payload.access_token if payload else None
    return session_out(await manager.restore_session(access_token=token or None))


@router.post("/session/refresh", response_model=SessionOut)
async def refresh_session(
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> SessionOut:
    return session_out(await manager.revalidate())
