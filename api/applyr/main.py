from contextlib import asynccontextmanager
import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from applyr.api.router import api_router
from applyr.core.config import get_settings
from applyr.core.errors import PERSISTENCE_FAILURE_MESSAGE, DataAccessError
from applyr.core.telemetry import (
    TelemetryRuntime,
    configure_api_logging,
    request_id_var,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from applyr.db.runtime import close_storage, open_storage
from applyr.schemas.common import ErrorBody, ErrorEnvelope

REQUEST_ID_HEADER = "X-Request-ID"

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    503: "SERVICE_UNAVAILABLE",
}

settings = get_settings()
configure_api_logging(settings)
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    await open_storage()
    try:
        yield
    finally:
        if _telemetry_runtime is not None:
            shutdown_api_telemetry(app, _telemetry_runtime)
        await close_storage()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    started_at = time.perf_counter()
    try:
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started_at) * 1000.0
        logger.info(
            "http request method=%s path=%s status=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
    finally:
        request_id_var.reset(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    body = ErrorEnvelope(error=ErrorBody(code=code, message=message, details=details), request_id=request_id)
    headers = {REQUEST_ID_HEADER: request_id} if request_id else None
    return JSONResponse(
        body.model_dump(exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


@app.exception_handler(DataAccessError)
async def data_access_error_handler(request: Request, exc: DataAccessError) -> JSONResponse:
    if not exc.is_operational:
        logger.error(
            "persistence failure method=%s path=%s message=%s details=%s",
            request.method,
            request.url.path,
            exc.message,
            exc.details,
            exc_info=exc.__cause__ or exc,
        )
        return _error_response(request, exc.kind.status_code, exc.kind.code, PERSISTENCE_FAILURE_MESSAGE)

    logger.info("request rejected kind=%s message=%s", exc.kind.value, exc.message)
    return _error_response(request, exc.kind.status_code, exc.kind.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {
        "fields": [
            {"loc": [str(part) for part in error.get("loc", ())], "message": error.get("msg", "")}
            for error in exc.errors()
        ]
    }
    return _error_response(request, 400, "VALIDATION_ERROR", "validation failed", details)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "ERROR" if exc.status_code < 500 else "INTERNAL_ERROR")
    return _error_response(request, exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return _error_response(request, 500, "INTERNAL_ERROR", PERSISTENCE_FAILURE_MESSAGE)


app.include_router(api_router)
