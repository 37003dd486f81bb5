"""Map typed service failures onto HTTP responses."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from authledger.errors import AuthError


def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.error_code, exc.message),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
