"""FORGE MES — Error envelope helpers and the domain exception handler."""
from fastapi import Request, status
from fastapi.responses import JSONResponse

from mes.core.errors import DomainError


def error_response(code: str, message: str, field_errors: list[dict] | None = None, meta: dict | None = None) -> dict:
    return {
        "data": None,
        "error": {
            "code": code,
            "message": message,
            "field_errors": field_errors or []
        },
        "meta": meta
    }


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.field_errors(), exc.details or None),
    )


async def http_error_handler(request: Request, exc) -> JSONResponse:
    """Starlette HTTPException (auth/permission failures) in the same envelope."""
    code = {
        status.HTTP_401_UNAUTHORIZED: "not_authenticated",
        status.HTTP_403_FORBIDDEN: "permission_denied",
        status.HTTP_404_NOT_FOUND: "not_found",
    }.get(exc.status_code, "http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )
