from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from social_auth import __version__
from social_auth.auth import get_session, require_admin
from social_auth.auth.crud import (
    bootstrap_admin_if_needed,
    create_user,
    get_user_by_id,
    list_users,
    public_user,
    update_user_profile,
    verify_user_credentials,
)
from social_auth.auth.deps import get_cfg
from social_auth.auth.providers import ProviderError, get_provider
from social_auth.auth.reconcile import reconcile_profile
from social_auth.auth.security import issue_session_token
from social_auth.config import Config, load_config
from social_auth.constants import (
    MAX_LIMIT,
    MAX_PAGE,
    PROVIDER_GITHUB,
    PROVIDER_GOOGLE,
    PROVIDER_TELEGRAM,
    ROLE_USER,
    VISIBILITY_PUBLIC,
    ResponseCode,
    ResponseMessage,
)
from social_auth.db import connect, init_db
from social_auth.media.cloudinary_upload import FileTooLarge, upload_asset
from social_auth.models import SessionData
from social_auth.quicksave.crud import add_quick_save, delete_quick_save, list_quick_saves

from .responses import envelope, install_exception_handlers


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


def _server_error(message: str, exc: BaseException) -> JSONResponse:
    """Log the real failure, hand the client only the canned message."""
    _debug(f"{message}: {exc!r}")
    return envelope(ResponseCode.INTERNAL_SERVER_ERROR, message)


def _bad_request(message: str, detail: str | None = None) -> JSONResponse:
    if detail is None:
        return envelope(ResponseCode.BAD_REQUEST, message)
    return envelope(ResponseCode.BAD_REQUEST, message, {"message": detail})


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth: email / password
# -----------------------------


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


@router.post("/auth/register")
def auth_register(payload: RegisterRequest, cfg: Config = Depends(get_cfg)) -> JSONResponse:
    try:
        with connect(cfg.DB_DSN) as conn:
            try:
                u = create_user(
                    conn,
                    email=str(payload.email),
                    password=payload.password,
                    name=payload.name,
                    salt=cfg.PASSWORD_SALT,
                )
            except ValueError as e:
                if str(e) == "email_exists":
                    return _bad_request(ResponseMessage.USER_ALREADY_EXIST)
                return _bad_request(ResponseMessage.VALIDATION_ERROR, str(e))
            token = issue_session_token(cfg, u)
    except Exception as e:
        return _server_error(ResponseMessage.USER_REGISTER_ERROR, e)

    return envelope(ResponseCode.SUCCESS, ResponseMessage.USER_REGISTER_SUCCESS, {"user": u, "token": token})


@router.post("/auth/login")
def auth_login(payload: LoginRequest, cfg: Config = Depends(get_cfg)) -> JSONResponse:
    try:
        with connect(cfg.DB_DSN) as conn:
            row = verify_user_credentials(conn, str(payload.email), payload.password, salt=cfg.PASSWORD_SALT)
            if row is None:
                # Same response whether or not the email exists.
                return _bad_request(ResponseMessage.INVALID_CREDENTIALS)
            u = public_user(row)
            token = issue_session_token(cfg, u)
    except Exception as e:
        return _server_error(ResponseMessage.USER_LOGIN_ERROR, e)

    return envelope(ResponseCode.SUCCESS, ResponseMessage.USER_LOGIN_SUCCESS, {"user": u, "token": token})


# -----------------------------
# Auth: social providers
# -----------------------------


def _b64_encode_state(url: str) -> str:
    return base64.b64encode(url.encode("utf-8")).decode("ascii")


def _redirect_host_from_state(cfg: Config, state: str | None) -> str:
    """Decode the client URL carried in `state` (base64).

    Only CLIENT_URL and the configured CORS origins are accepted; anything else
    falls back to CLIENT_URL so the callback can't be used as an open redirect.
    """
    default = cfg.CLIENT_URL.rstrip("/")
    s = (state or "").strip()
    if not s:
        return default
    s = s.replace("-", "+").replace("_", "/")
    s += "=" * (-len(s) % 4)
    try:
        host = base64.b64decode(s, validate=True).decode("utf-8").strip().rstrip("/")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return default
    allowed = {default, *cfg.cors_origins}
    return host if host in allowed else default


def _error_redirect(cfg: Config) -> RedirectResponse:
    return RedirectResponse(url=f"{cfg.CLIENT_URL.rstrip('/')}/auth/error", status_code=302)


def _token_redirect(cfg: Config, *, url: str, token: str) -> RedirectResponse:
    resp = RedirectResponse(url=f"{url}?token={token}", status_code=302)
    samesite = (cfg.AUTH_COOKIE_SAMESITE or "lax").lower()
    resp.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite=samesite,
        # Browsers require Secure when SameSite=None
        secure=True if samesite == "none" else bool(cfg.AUTH_COOKIE_SECURE),
        max_age=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES) * 60,
        path="/",
    )
    return resp


def _social_sign_in(cfg: Config, provider_name: str, params: Dict[str, str]) -> Optional[str]:
    """Exchange callback params for a profile, reconcile it, and mint a token.

    Returns None on any failure (already logged).
    """
    provider = get_provider(provider_name)
    try:
        profile = provider.exchange(cfg, params)
    except ProviderError as e:
        _debug(f"{provider_name} sign-in rejected: {e}")
        return None
    except Exception as e:
        _debug(f"{provider_name} exchange failed: {e!r}")
        return None

    try:
        with connect(cfg.DB_DSN) as conn:
            row, outcome = reconcile_profile(conn, profile)
            token = issue_session_token(cfg, row)
    except Exception as e:
        _debug(f"{provider_name} reconcile failed for provider_id={profile.provider_id}: {e!r}")
        return None

    _debug(f"{provider_name} sign-in: user_id={row['user_id']} outcome={outcome}")
    return token


@router.get("/auth/google")
def auth_google(state: Optional[str] = Query(None), cfg: Config = Depends(get_cfg)) -> RedirectResponse:
    provider = get_provider(PROVIDER_GOOGLE)
    try:
        url = provider.authorize_url(cfg, state=state or _b64_encode_state(cfg.CLIENT_URL))
    except ProviderError as e:
        _debug(str(e))
        return _error_redirect(cfg)
    return RedirectResponse(url=url, status_code=302)


@router.get("/auth/google/callback")
def auth_google_callback(request: Request, cfg: Config = Depends(get_cfg)) -> RedirectResponse:
    params = dict(request.query_params)
    token = _social_sign_in(cfg, PROVIDER_GOOGLE, params)
    if token is None:
        return _error_redirect(cfg)
    host = _redirect_host_from_state(cfg, params.get("state"))
    return _token_redirect(cfg, url=f"{host}/auth/callback", token=token)


@router.get("/auth/github")
def auth_github(cfg: Config = Depends(get_cfg)) -> RedirectResponse:
    provider = get_provider(PROVIDER_GITHUB)
    try:
        url = provider.authorize_url(cfg)
    except ProviderError as e:
        _debug(str(e))
        return _error_redirect(cfg)
    return RedirectResponse(url=url, status_code=302)


@router.get("/auth/github/callback")
def auth_github_callback(request: Request, cfg: Config = Depends(get_cfg)) -> RedirectResponse:
    token = _social_sign_in(cfg, PROVIDER_GITHUB, dict(request.query_params))
    if token is None:
        return _error_redirect(cfg)
    return _token_redirect(cfg, url=f"{cfg.CLIENT_URL.rstrip('/')}/home", token=token)


@router.get("/auth/telegram/callback")
def auth_telegram_callback(request: Request, cfg: Config = Depends(get_cfg)) -> RedirectResponse:
    token = _social_sign_in(cfg, PROVIDER_TELEGRAM, dict(request.query_params))
    if token is None:
        return _error_redirect(cfg)
    return _token_redirect(cfg, url=f"{cfg.CLIENT_URL.rstrip('/')}/home", token=token)


# -----------------------------
# User profile
# -----------------------------


def _load_current_user(cfg: Config, session: SessionData) -> Optional[Dict[str, Any]]:
    with connect(cfg.DB_DSN) as conn:
        row = get_user_by_id(conn, session.id)
        return public_user(row) if row is not None else None


@router.get("/user/details")
def user_details(session: SessionData = Depends(get_session), cfg: Config = Depends(get_cfg)) -> JSONResponse:
    try:
        u = _load_current_user(cfg, session)
    except Exception as e:
        return _server_error(ResponseMessage.USER_DETAILS_ERROR, e)
    if u is None:
        return envelope(ResponseCode.NOT_FOUND, ResponseMessage.USER_NOT_FOUND)
    return envelope(ResponseCode.SUCCESS, ResponseMessage.USER_DETAILS_SUCCESS, u)


@router.post("/user/accessTokenLogin")
def user_access_token_login(
    session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    try:
        u = _load_current_user(cfg, session)
    except Exception as e:
        return _server_error(ResponseMessage.ACCESS_TOKEN_LOGIN_ERROR, e)
    if u is None:
        return envelope(ResponseCode.NOT_FOUND, ResponseMessage.USER_NOT_FOUND)
    return envelope(ResponseCode.SUCCESS, ResponseMessage.ACCESS_TOKEN_LOGIN_SUCCESS, u)


class ListUsersRequest(BaseModel):
    page: int = Field(1, ge=1, le=MAX_PAGE)
    limit: int = Field(10, ge=1, le=MAX_LIMIT)


@router.post("/user/admin-list")
def user_admin_list(
    payload: Optional[ListUsersRequest] = None,
    _admin: SessionData = Depends(require_admin),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    p = payload or ListUsersRequest()
    try:
        with connect(cfg.DB_DSN) as conn:
            users, total = list_users(conn, offset=(p.page - 1) * p.limit, limit=p.limit)
    except Exception as e:
        return _server_error(ResponseMessage.USER_LIST_ERROR, e)
    return envelope(
        ResponseCode.SUCCESS,
        ResponseMessage.USER_LIST_SUCCESS,
        {"users": users, "total": total, "page": p.page, "limit": p.limit},
    )


@router.post("/user/public-list")
def user_public_list(
    payload: Optional[ListUsersRequest] = None,
    _session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    p = payload or ListUsersRequest()
    try:
        with connect(cfg.DB_DSN) as conn:
            users, total = list_users(
                conn,
                offset=(p.page - 1) * p.limit,
                limit=p.limit,
                visibility=VISIBILITY_PUBLIC,
                role=ROLE_USER,
            )
    except Exception as e:
        return _server_error(ResponseMessage.USER_PUBLIC_LIST_ERROR, e)
    return envelope(
        ResponseCode.SUCCESS,
        ResponseMessage.USER_PUBLIC_LIST_SUCCESS,
        {"users": users, "total": total, "page": p.page, "limit": p.limit},
    )


class UpdateProfileRequest(BaseModel):
    """Partial update. Omitted, null and empty-string fields keep their stored value."""

    name: Optional[str] = None
    email: Optional[EmailStr] = None
    # Older clients send the misspelled "visiblity".
    visibility: Optional[str] = Field(None, validation_alias=AliasChoices("visibility", "visiblity"))
    image: Optional[str] = None
    password: Optional[str] = None
    bio: Optional[str] = None
    role: Optional[str] = Field(None, pattern=r"^(user|admin)$")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_omitted(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


@router.put("/user/update")
def user_update(
    payload: UpdateProfileRequest,
    session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    try:
        with connect(cfg.DB_DSN) as conn:
            try:
                u = update_user_profile(
                    conn,
                    user_id=session.id,
                    name=payload.name,
                    email=str(payload.email) if payload.email else None,
                    visibility=payload.visibility,
                    image=payload.image,
                    password=payload.password,
                    bio=payload.bio,
                    role=payload.role,
                    salt=cfg.PASSWORD_SALT,
                )
            except ValueError as e:
                if str(e) == "email_exists":
                    return _bad_request(ResponseMessage.USER_ALREADY_EXIST)
                return _bad_request(ResponseMessage.VALIDATION_ERROR, str(e))
            if u is None:
                return envelope(ResponseCode.NOT_FOUND, ResponseMessage.USER_NOT_FOUND)
            # Fresh token so role/email changes take effect immediately.
            token = issue_session_token(cfg, u)
    except Exception as e:
        return _server_error(ResponseMessage.USER_UPDATE_ERROR, e)

    return envelope(ResponseCode.SUCCESS, ResponseMessage.USER_UPDATE_SUCCESS, {"user": u, "token": token})


@router.post("/user/upload")
def user_upload(
    file: Optional[UploadFile] = File(None),
    _session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    if file is None or not file.filename:
        return _bad_request(ResponseMessage.FILE_NOT_FOUND)
    try:
        result = upload_asset(cfg, file.file, filename=file.filename)
    except FileTooLarge:
        return _bad_request(ResponseMessage.FILE_TOO_LARGE)
    except Exception as e:
        return _server_error(ResponseMessage.ASSET_UPLOAD_ERROR, e)
    return envelope(ResponseCode.SUCCESS, ResponseMessage.ASSET_UPLOAD_SUCCESS, result)


# -----------------------------
# Quick saves
# -----------------------------


class QuickSaveRequest(BaseModel):
    content: Dict[str, Any]


@router.post("/user/add-to-quick-save")
def user_add_quick_save(
    payload: QuickSaveRequest,
    session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    try:
        with connect(cfg.DB_DSN) as conn:
            qs = add_quick_save(conn, user_id=session.id, content=payload.content)
    except Exception as e:
        return _server_error(ResponseMessage.QUICK_SAVE_ADD_ERROR, e)
    return envelope(ResponseCode.SUCCESS, ResponseMessage.QUICK_SAVE_ADD_SUCCESS, qs)


@router.get("/user/get-quick-saves")
def user_get_quick_saves(
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    search: Optional[str] = Query(None),
    sort_by: str = Query("createdAt", alias="sortBy", pattern=r"^(createdAt|updatedAt)$"),
    sort_order: str = Query("desc", alias="sortOrder", pattern=r"^(asc|desc)$"),
    session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    try:
        with connect(cfg.DB_DSN) as conn:
            result = list_quick_saves(
                conn,
                user_id=session.id,
                page=page,
                limit=limit,
                search=search,
                sort_by=sort_by,
                sort_order=sort_order,
            )
    except Exception as e:
        return _server_error(ResponseMessage.QUICK_SAVE_LIST_ERROR, e)
    return envelope(ResponseCode.SUCCESS, ResponseMessage.QUICK_SAVE_LIST_SUCCESS, result)


@router.delete("/user/quick-save/{quick_save_id}")
def user_delete_quick_save(
    quick_save_id: int,
    session: SessionData = Depends(get_session),
    cfg: Config = Depends(get_cfg),
) -> JSONResponse:
    try:
        with connect(cfg.DB_DSN) as conn:
            deleted = delete_quick_save(conn, user_id=session.id, quick_save_id=quick_save_id)
    except Exception as e:
        return _server_error(ResponseMessage.QUICK_SAVE_DELETE_ERROR, e)
    if not deleted:
        # Someone else's record looks exactly like a missing one.
        return envelope(ResponseCode.NOT_FOUND, ResponseMessage.QUICK_SAVE_NOT_FOUND)
    return envelope(ResponseCode.SUCCESS, ResponseMessage.QUICK_SAVE_DELETE_SUCCESS, {"id": quick_save_id})


# -----------------------------
# App
# -----------------------------


def create_app(cfg: Config | None = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="Social Auth API", version=__version__)
    # Make config available to auth deps and handlers.
    app.state.cfg = cfg

    if cfg.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    install_exception_handlers(app)
    app.include_router(router)

    @app.on_event("startup")
    def _on_startup() -> None:
        # Ensure schema exists.
        init_db(cfg.DB_DSN)

        # Bootstrap first admin if needed (only when users table is empty)
        boot = bootstrap_admin_if_needed(cfg)
        if boot:
            _debug(f"Bootstrapped initial admin user: email={boot.get('email')} role={boot.get('role')}")

    return app


app = create_app()
