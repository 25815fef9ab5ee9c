"""Global error handlers ensuring request_id is included in JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from semchat.api.request_id import get_request_id
from semchat.domain.errors import SemchatError, StoreFailure

logger = logging.getLogger(__name__)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": "validation_error", "errors": _jsonable_errors(exc), "request_id": rid}
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(SemchatError)
    async def domain_exc_handler(request: Request, exc: SemchatError):  # type: ignore[override]
        rid = get_request_id(request)
        if isinstance(exc, StoreFailure):
            logger.error(
                "store_failure",
                exc_info=exc,
                extra={"error": exc.detail, "path": request.url.path, "method": request.method},
            )
            detail = "internal_error"
        else:
            detail = exc.detail
        return JSONResponse(status_code=exc.status_code, content={"detail": detail, "request_id": rid})


def _jsonable_errors(exc: RequestValidationError) -> list:
    errors = []
    for error in exc.errors():
        item = {key: value for key, value in error.items() if key != "ctx"}
        errors.append(item)
    return errors
