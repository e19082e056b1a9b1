"""Response envelope shared by every API endpoint: {code, message, data?}.

The HTTP status always equals `code`.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from social_auth.constants import ResponseCode, ResponseMessage


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


_NO_DATA = object()


def envelope(code: int, message: str, data: Any = _NO_DATA, *, headers: dict | None = None) -> JSONResponse:
    body: dict = {"code": int(code), "message": message}
    if data is not _NO_DATA:
        body["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=int(code), content=body, headers=headers)


def _first_validation_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return ResponseMessage.VALIDATION_ERROR
    e = errs[0]
    loc = ".".join(str(x) for x in e.get("loc", ()) if x not in ("body", "query", "path"))
    msg = str(e.get("msg") or "invalid")
    return f"{loc}: {msg}" if loc else msg


def install_exception_handlers(app: FastAPI) -> None:
    """Route every failure through the envelope; clients never see a bare error page."""

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else ResponseMessage.INTERNAL_ERROR
        return envelope(exc.status_code, detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
        return envelope(
            ResponseCode.BAD_REQUEST,
            ResponseMessage.VALIDATION_ERROR,
            {"message": _first_validation_message(exc)},
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
        return envelope(ResponseCode.INTERNAL_SERVER_ERROR, ResponseMessage.INTERNAL_ERROR)


__all__ = ["envelope", "install_exception_handlers"]
