"""
Middleware and exception handlers for error handling, logging, and request tracking.
"""
import time

from fastapi import FastAPI, Request, Response
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from common.exceptions import BaseToolkitException, UploadError
from common.logging import (
    RequestContextLogger,
    get_logger,
    log_api_request,
    log_error,
)
from common.responses import error_json, exception_response

REQUEST_ID_HEADER = "X-Request-ID"


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Middleware for tracking requests with correlation IDs and logging."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind a request id to the logging context and log the request outcome."""
        incoming = request.headers.get(REQUEST_ID_HEADER)
        client_ip = request.client.host if request.client else None
        with RequestContextLogger(request_id=incoming, client_ip=client_ip) as ctx:
            started = time.perf_counter()
            response = await call_next(request)
            duration_ms = (time.perf_counter() - started) * 1000

            response.headers[REQUEST_ID_HEADER] = ctx.request_id
            log_api_request(
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
                user_agent=request.headers.get("user-agent"),
            )
            return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last-resort handler for errors that escape the exception handlers."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except BaseToolkitException as e:
            return handle_toolkit_exception(request, e)
        except HTTPException as e:
            return exception_response(e)
        except Exception as e:  # noqa: BLE001
            log_error(e, context={"path": str(request.url.path), "method": request.method})
            # Don't expose internal error details
            return exception_response(e)


def handle_toolkit_exception(request: Request, error: BaseToolkitException) -> JSONResponse:
    """Log a toolkit exception and render it as an error envelope.

    Upload errors report the files stored before the failure in ``data``.
    """
    logger = get_logger("error_handler")
    log = logger.error if error.status_code >= 500 else logger.warning
    log(
        f"Toolkit exception: {error.error_code}",
        extra={
            "error_code": error.error_code,
            "status_code": error.status_code,
            "context": error.context,
            "path": str(request.url.path),
            "method": request.method
        }
    )

    data = None
    if isinstance(error, UploadError) and error.uploaded_files:
        data = error.uploaded_files
    return exception_response(error, data=data)


async def toolkit_exception_handler(request: Request, exc: BaseToolkitException) -> JSONResponse:
    return handle_toolkit_exception(request, exc)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    get_logger("error_handler").warning(
        f"HTTP exception: {exc.status_code}",
        extra={
            "status_code": exc.status_code,
            "detail": exc.detail,
            "path": str(request.url.path),
            "method": request.method
        }
    )
    return exception_response(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        errors.append({
            "field": ".".join(str(x) for x in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        })
    return error_json("Request validation failed", 422, data=errors)


def setup_exception_handlers(app: FastAPI) -> None:
    """Render toolkit and HTTP errors through the JSON error envelope."""
    app.add_exception_handler(BaseToolkitException, toolkit_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)


def setup_middleware(app: FastAPI) -> None:
    """Setup all middleware for the application."""
    # Add middleware in reverse order (last added is executed first)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestTrackingMiddleware)
