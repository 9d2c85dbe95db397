"""
JSON response helpers: plain payloads and the standard error/success envelope.
"""

import json
from typing import Any, Dict, Mapping, Optional
from datetime import datetime, date
from uuid import UUID
from pydantic import BaseModel
from fastapi import status
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse

JSON_MEDIA_TYPE = "application/json"


class JSONEnvelope(BaseModel):
    """Standard envelope used for all toolkit JSON responses."""
    error: bool
    message: str = ""
    data: Optional[Any] = None


def _ensure_jsonable(value: Any) -> Any:
    """Recursively convert common non-JSON-serializable types to JSON-safe values.

    Handles dicts, lists/tuples/sets, datetime, UUID, and Pydantic models.
    Fallback converts unknown objects to str().
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, BaseModel):
        return _ensure_jsonable(value.model_dump(mode="json"))

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if isinstance(value, UUID):
        return str(value)

    if isinstance(value, dict):
        return {str(k): _ensure_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [_ensure_jsonable(v) for v in value]

    if isinstance(value, (set, frozenset)):
        return [_ensure_jsonable(v) for v in value]

    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")

    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def _error_message(error: Any) -> str:
    if isinstance(error, HTTPException):
        return str(error.detail)
    return str(error)


def write_json(
    data: Any,
    status_code: int = status.HTTP_200_OK,
    headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    """Serialize ``data`` to a JSON response.

    Header overrides are applied first; ``Content-Type`` is always
    ``application/json``.
    """
    response = JSONResponse(
        content=_ensure_jsonable(data),
        status_code=status_code,
        media_type=JSON_MEDIA_TYPE,
    )

    if headers:
        for key, value in headers.items():
            response.headers[key] = value
    response.headers["content-type"] = JSON_MEDIA_TYPE

    return response


def success_json(
    data: Any = None,
    message: str = "",
    status_code: int = status.HTTP_200_OK,
    headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    """Create a successful envelope response."""
    envelope = JSONEnvelope(error=False, message=message, data=_ensure_jsonable(data))
    return write_json(envelope.model_dump(exclude_none=True), status_code, headers)


def error_json(
    error: Any,
    status_code: Optional[int] = None,
    data: Any = None,
    headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    """Wrap an error message in the standard envelope.

    The status defaults to 400 when none is given. Only the message text is
    reported, never a traceback.
    """
    if status_code is None:
        status_code = status.HTTP_400_BAD_REQUEST

    envelope = JSONEnvelope(error=True, message=_error_message(error), data=_ensure_jsonable(data))
    return write_json(envelope.model_dump(exclude_none=True), status_code, headers)


def exception_response(error: Exception, data: Any = None) -> JSONResponse:
    """Render a toolkit/HTTP exception with its own status code and headers."""
    if isinstance(error, HTTPException):
        headers: Optional[Dict[str, str]] = dict(error.headers) if error.headers else None
        return error_json(error, error.status_code, data=data, headers=headers)

    return error_json(
        "An unexpected error occurred",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
