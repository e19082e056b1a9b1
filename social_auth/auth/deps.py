from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from social_auth.config import Config
from social_auth.constants import ROLE_ADMIN, ResponseMessage
from social_auth.models import SessionData

from .security import Unauthenticated, verify_session_token


_bearer = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
    # Keep a single detail string so frontends can handle consistently.
    return HTTPException(
        status_code=401,
        detail=ResponseMessage.ERR_UNAUTHORIZED,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_cfg(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return cfg


def get_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_cfg),
) -> SessionData:
    """Authenticate a request from its session token.

    Supports both:
      - Authorization: Bearer <jwt>
      - the httpOnly cookie set by the OAuth callbacks

    Only the token is trusted here; the user row is not re-read, so role
    changes show up once a fresh token is issued.
    """

    token: str | None = None

    # Prefer Bearer token when explicitly provided.
    if credentials is not None and credentials.credentials:
        token = credentials.credentials

    if not token:
        token = request.cookies.get(cfg.AUTH_COOKIE_NAME)

    try:
        return verify_session_token(cfg, token)
    except Unauthenticated:
        raise _unauthorized()


def require_admin(session: SessionData = Depends(get_session)) -> SessionData:
    if session.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail=ResponseMessage.ERR_FORBIDDEN)
    return session
