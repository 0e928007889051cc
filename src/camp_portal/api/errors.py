"""
camp_portal.api.errors

Exception handlers.

Responsibilities:
- Render `CampPortalError` as `{"error": message, "code": error_code}`.
- Render request validation failures as 400 with field-level details.
- Render anything unexpected as a generic 500 without internals.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from camp_portal.errors import CampPortalError
from camp_portal.observability.logging import get_logger

log = get_logger(__name__)


def _field_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    # Input values are omitted: they may contain the submitted password.
    return [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "msg": err.get("msg", ""),
        }
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CampPortalError)
    async def _portal_error(request: Request, exc: CampPortalError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.error_code},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = _field_errors(exc)
        log.info("request.validation_failed", fields=[e["field"] for e in errors])
        return JSONResponse(
            status_code=HTTP_400_BAD_REQUEST,
            content={"error": "Validation error.", "code": "validation_error", "errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        log.error("request.unhandled_exception", exc_info=exc)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "An unexpected server error occurred."},
        )


# --- Module Notes -----------------------------------------------------------
# Stack traces go to the structured log only, never into a response body.
