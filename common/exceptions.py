"""
Centralized exception classes for the handler toolkit.
Provides a hierarchy of custom exceptions with proper error codes and messages.
"""

from typing import Optional, Dict, Any, List
from fastapi import HTTPException, status

# Literal values; starlette renamed these constants
HTTP_413_CONTENT_TOO_LARGE = 413
HTTP_422_UNPROCESSABLE_CONTENT = 422


class BaseToolkitException(HTTPException):
    """Base exception class for all toolkit errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def __str__(self) -> str:
        return str(self.detail)


# Upload Exceptions
class UploadError(BaseToolkitException):
    """Upload ingestion errors.

    ``uploaded_files`` holds the files persisted before the failure.
    """

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        error_code: str = "UPLOAD_ERROR",
        filename: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            status_code=status_code,
            error_code=error_code,
            context=context or {"filename": filename}
        )
        self.filename = filename
        self.uploaded_files: List[Any] = []


class DirectoryError(UploadError):
    """Destination directory could not be created."""

    def __init__(
        self,
        detail: str,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="DIRECTORY_ERROR",
            context=context or {"path": path}
        )
        self.path = path


class ParseError(UploadError):
    """Malformed or oversized multipart body."""

    def __init__(
        self,
        detail: str,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            error_code="PARSE_ERROR",
            context=context
        )


class NoFilesError(ParseError):
    """Multipart body carried no file parts."""

    def __init__(self, detail: str = "no files were uploaded"):
        super().__init__(detail=detail)
        self.error_code = "NO_FILES"


class SizeError(UploadError):
    """Uploaded file exceeds the configured size."""

    def __init__(
        self,
        filename: str,
        size: int,
        limit: int,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=f"the uploaded file is too big: {size} bytes exceeds {limit} bytes",
            status_code=HTTP_413_CONTENT_TOO_LARGE,
            error_code="FILE_TOO_LARGE",
            filename=filename,
            context=context or {"filename": filename, "size": size, "limit": limit}
        )


class ReadError(UploadError):
    """Uploaded file could not be read."""

    def __init__(
        self,
        detail: str,
        filename: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            error_code="READ_ERROR",
            filename=filename,
            context=context
        )


class ContentTypeError(UploadError):
    """Sniffed content type is not in the allow-list."""

    def __init__(
        self,
        filename: str,
        content_type: str,
        allowed: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=f"the uploaded file type is not permitted: {content_type}",
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            error_code="CONTENT_TYPE_NOT_PERMITTED",
            filename=filename,
            context=context or {
                "filename": filename,
                "content_type": content_type,
                "allowed_content_types": allowed or [],
            }
        )
        self.content_type = content_type


class WriteError(UploadError):
    """Destination file could not be created or written."""

    def __init__(
        self,
        detail: str,
        filename: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="WRITE_ERROR",
            filename=filename,
            context=context
        )


# Validation Exceptions
class ValidationException(BaseToolkitException):
    """Data validation errors."""

    def __init__(
        self,
        detail: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: str = "VALIDATION_ERROR",
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            status_code=HTTP_422_UNPROCESSABLE_CONTENT,
            error_code=error_code,
            context=context or {"field": field, "value": value}
        )


class EmptyInputError(ValidationException):
    """Slug input, or the slug derived from it, is empty."""

    def __init__(self, detail: str = "empty string not permitted", value: Optional[str] = None):
        super().__init__(
            detail=detail,
            field="text",
            value=value,
            error_code="EMPTY_INPUT"
        )


# JSON Body Exceptions
class JSONBodyError(BaseToolkitException):
    """JSON request body errors."""

    def __init__(
        self,
        detail: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        error_code: str = "INVALID_JSON_BODY",
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            detail=detail,
            status_code=status_code,
            error_code=error_code,
            context=context
        )


class JSONSyntaxError(JSONBodyError):
    """Body is not well-formed JSON."""

    def __init__(self, position: Optional[int] = None):
        detail = "body contains badly-formed JSON"
        if position is not None:
            detail = f"{detail} (at character {position})"
        super().__init__(
            detail=detail,
            error_code="JSON_SYNTAX_ERROR",
            context={"position": position}
        )
        self.position = position


class TypeMismatchError(JSONBodyError):
    """A JSON value does not match the declared field type."""

    def __init__(self, field: Optional[str] = None, detail: Optional[str] = None):
        if detail is None:
            detail = (
                f'body contains incorrect JSON type for field "{field}"'
                if field else "body contains incorrect JSON type"
            )
        super().__init__(
            detail=detail,
            error_code="JSON_TYPE_MISMATCH",
            context={"field": field}
        )
        self.field = field


class EmptyBodyError(JSONBodyError):
    """Body is empty."""

    def __init__(self):
        super().__init__(detail="body must not be empty", error_code="EMPTY_BODY")


class TooLargeError(JSONBodyError):
    """Body exceeds the configured byte ceiling."""

    def __init__(self, limit: int):
        super().__init__(
            detail=f"body must not be larger than {limit} bytes",
            status_code=HTTP_413_CONTENT_TOO_LARGE,
            error_code="BODY_TOO_LARGE",
            context={"limit": limit}
        )
        self.limit = limit


class UnknownFieldError(JSONBodyError):
    """Body contains a key the target does not declare."""

    def __init__(self, field: str):
        super().__init__(
            detail=f'body contains unknown key "{field}"',
            error_code="UNKNOWN_FIELD",
            context={"field": field}
        )
        self.field = field


class TrailingDataError(JSONBodyError):
    """Body carries content after the first JSON value."""

    def __init__(self):
        super().__init__(
            detail="body must contain only one JSON value",
            error_code="TRAILING_DATA"
        )
