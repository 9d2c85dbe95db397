"""
Bounded, strict JSON request body decoding.
"""

import json
from typing import Any, Optional, Set, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from common.exceptions import (
    EmptyBodyError,
    JSONSyntaxError,
    TooLargeError,
    TrailingDataError,
    TypeMismatchError,
    UnknownFieldError,
)
from config.config import settings

ModelT = TypeVar("ModelT", bound=BaseModel)

_WHITESPACE = " \t\n\r"
_decoder = json.JSONDecoder()


async def read_body(request: Request, max_bytes: int) -> bytes:
    """Read the request body, failing as soon as it grows past ``max_bytes``."""
    chunks = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > max_bytes:
            raise TooLargeError(max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


def _known_keys(model: Type[BaseModel]) -> Set[str]:
    keys = set()
    for name, field in model.model_fields.items():
        keys.add(name)
        if field.alias:
            keys.add(field.alias)
        if isinstance(field.validation_alias, str):
            keys.add(field.validation_alias)
    return keys


def _check_unknown_fields(value: Any, model: Type[BaseModel]) -> None:
    if not isinstance(value, dict):
        return
    if model.model_config.get("extra") == "allow":
        return
    known = _known_keys(model)
    for key in value:
        if key not in known:
            raise UnknownFieldError(key)


def _type_mismatch(error: ValidationError) -> TypeMismatchError:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    if first.get("type") == "missing":
        return TypeMismatchError(field, detail=f'body is missing required field "{field}"')
    return TypeMismatchError(field or None)


def decode_json(
    body: bytes,
    target: Optional[Type[ModelT]] = None,
    allow_unknown_fields: bool = False,
) -> Any:
    """Decode exactly one JSON value from ``body`` into ``target``.

    With no ``target`` the decoded Python value is returned as-is.
    """
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise JSONSyntaxError(e.start) from None

    start = len(text) - len(text.lstrip(_WHITESPACE))
    if start == len(text):
        raise EmptyBodyError()

    try:
        value, end = _decoder.raw_decode(text, start)
    except json.JSONDecodeError as e:
        if e.pos >= len(text.rstrip(_WHITESPACE)):
            raise JSONSyntaxError() from None
        raise JSONSyntaxError(e.pos) from None

    if text[end:].strip(_WHITESPACE):
        raise TrailingDataError()

    if target is None:
        return value

    if not allow_unknown_fields:
        _check_unknown_fields(value, target)
    try:
        # JSON-mode strict validation: no "123" -> 123 coercion
        return target.model_validate_json(text[start:end], strict=True)
    except ValidationError as e:
        raise _type_mismatch(e) from None


async def read_json(
    request: Request,
    target: Optional[Type[ModelT]] = None,
    *,
    max_bytes: Optional[int] = None,
    allow_unknown_fields: Optional[bool] = None,
) -> Any:
    """Read and decode a JSON request body.

    Args:
        request: Incoming request.
        target: Pydantic model class to validate into, or None for a plain value.
        max_bytes: Body ceiling; defaults to ``settings.json_max_body_bytes``.
        allow_unknown_fields: Accept keys the model does not declare; defaults
            to ``settings.json_allow_unknown_fields``.

    Raises:
        TooLargeError, EmptyBodyError, JSONSyntaxError, TypeMismatchError,
        UnknownFieldError, TrailingDataError
    """
    if max_bytes is None:
        max_bytes = settings.json_max_body_bytes
    if allow_unknown_fields is None:
        allow_unknown_fields = settings.json_allow_unknown_fields

    body = await read_body(request, max_bytes)
    return decode_json(body, target, allow_unknown_fields)
