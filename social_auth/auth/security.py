from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping

import jwt
from passlib.context import CryptContext

from social_auth.config import Config
from social_auth.models import SessionData


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"


class Unauthenticated(Exception):
    """Session token missing, malformed, expired or signed with another secret."""


def _peppered(password: str, salt: str) -> str:
    return f"{password}{salt or ''}"


def hash_password(password: str, *, salt: str) -> str:
    """Hash `password` + the server-wide salt (passlib adds its own per-hash salt)."""
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(_peppered(password, salt))


def verify_password(password: str, password_hash: str | None, *, salt: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(_peppered(password, salt), password_hash)
    except Exception:
        # Malformed hash in the DB; treat as a mismatch.
        return False


def create_access_token(*, secret: str, user_id: int, email: str | None, role: str, expires_minutes: int) -> str:
    """HS256 token carrying the user id (as `sub` and `id`), email and role."""
    if not secret:
        raise ValueError("jwt_secret_blank")
    issued = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "id": int(user_id),
        "email": email,
        "role": role,
        "iat": issued,
        # Never shorter than a minute, whatever the config says.
        "exp": issued + timedelta(minutes=max(1, int(expires_minutes))),
    }
    return jwt.encode(claims, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature and expiry. Raises jwt.InvalidTokenError subclasses."""
    if not (token and secret):
        raise ValueError("token_or_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["exp", "sub"]})


def issue_session_token(cfg: Config, user: Mapping[str, Any]) -> str:
    """Mint a session token for a user row (dict or sqlite3.Row)."""
    return create_access_token(
        secret=cfg.AUTH_JWT_SECRET,
        user_id=int(user["user_id"]),
        email=user["email"],
        role=str(user["role"]),
        expires_minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES),
    )


def verify_session_token(cfg: Config, token: str | None) -> SessionData:
    if not token:
        raise Unauthenticated("missing_token")
    try:
        payload = decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except jwt.ExpiredSignatureError as e:
        raise Unauthenticated("token_expired") from e
    except jwt.InvalidTokenError as e:
        raise Unauthenticated("token_invalid") from e

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise Unauthenticated("token_sub_not_int") from e

    role = str(payload.get("role") or "")
    if not role:
        raise Unauthenticated("token_missing_role")

    email = payload.get("email")
    return SessionData(id=user_id, email=str(email) if email else None, role=role)
