"""
Multipart upload ingestion: parse, validate and persist uploaded files.
"""

from pathlib import Path
from typing import Any, AsyncGenerator, List, Optional

from fastapi import Request
from pydantic import BaseModel, ConfigDict
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser

from common.exceptions import (
    NoFilesError,
    ParseError,
    ReadError,
    UploadError,
    WriteError,
)
from common.filesystem import DEFAULT_DIR_MODE, PathLike, ensure_dir
from common.logging import get_logger, log_upload_event
from common.sniffing import SNIFF_LENGTH
from config.config import Settings
from security.upload_validation import UploadPolicy, UploadValidator

logger = get_logger(__name__)

COPY_CHUNK_SIZE = 64 * 1024
MULTIPART_CONTENT_TYPE = "multipart/form-data"


def _reason(error: Exception) -> str:
    # str(OSError) embeds the server-side path
    if isinstance(error, OSError):
        return error.strerror or type(error).__name__
    return str(error)


class UploadedFile(BaseModel):
    """Result record for one accepted file."""

    model_config = ConfigDict(frozen=True)

    original_name: str
    stored_name: str
    size_bytes: int
    content_type: str


class UploadIngestor:
    """
    Accepts multipart uploads and writes every file part to a directory.

    The ingestor holds only its immutable policy, so one instance can serve
    concurrent requests. Files within a request are handled sequentially and
    the first failure stops the batch; nothing already written is removed.
    """

    def __init__(self, policy: Optional[UploadPolicy] = None):
        self.policy = policy or UploadPolicy()
        self.validator = UploadValidator(self.policy)

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadIngestor":
        return cls(UploadPolicy.from_settings(settings))

    def with_policy(self, **changes: Any) -> "UploadIngestor":
        """Return a new ingestor whose policy has ``changes`` applied."""
        return UploadIngestor(UploadPolicy(**{**self.policy.model_dump(), **changes}))

    async def ingest_one(
        self,
        request: Request,
        destination_dir: PathLike,
        rename: bool = True
    ) -> UploadedFile:
        """Ingest a request expected to carry a single file; returns the first file."""
        files = await self.ingest_batch(request, destination_dir, rename)
        if not files:
            raise NoFilesError()
        return files[0]

    async def ingest_batch(
        self,
        request: Request,
        destination_dir: PathLike,
        rename: bool = True
    ) -> List[UploadedFile]:
        """
        Ingest every file part of a multipart request.

        Args:
            request: Incoming multipart/form-data request
            destination_dir: Directory to write into, created (mode 0755) if missing
            rename: Store files under a random token plus the original extension

        Returns:
            One UploadedFile per file part, in form order

        Raises:
            DirectoryError: Destination could not be created
            ParseError: Body is not valid multipart or exceeds the parse bound
            SizeError, ReadError, ContentTypeError, WriteError: Per-file failure;
                ``uploaded_files`` on the error lists what was stored before it
        """
        destination = await run_in_threadpool(ensure_dir, destination_dir, DEFAULT_DIR_MODE)
        form = await self._parse_form(request)

        results: List[UploadedFile] = []
        try:
            for upload in self._file_parts(form):
                try:
                    results.append(await self._ingest_file(upload, destination, rename))
                except UploadError as e:
                    e.uploaded_files = list(results)
                    raise
        finally:
            await form.close()

        return results

    async def _parse_form(self, request: Request) -> FormData:
        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith(MULTIPART_CONTENT_TYPE):
            raise ParseError("request Content-Type isn't multipart/form-data")
        if "boundary=" not in content_type.lower():
            raise ParseError("no multipart boundary param in Content-Type")

        parser = MultiPartParser(
            request.headers,
            self._bounded_stream(request),
            max_part_size=self.policy.max_file_size_bytes,
        )
        try:
            return await parser.parse()
        except (MultiPartException, ValueError) as e:
            raise ParseError(f"unable to parse multipart form: {e}") from e

    async def _bounded_stream(self, request: Request) -> AsyncGenerator[bytes, None]:
        limit = self.policy.max_request_size_bytes
        total = 0
        async for chunk in request.stream():
            total += len(chunk)
            if limit is not None and total > limit:
                raise MultiPartException(f"request body exceeds {limit} bytes")
            yield chunk

    @staticmethod
    def _file_parts(form: FormData) -> List[UploadFile]:
        # Field names in first-seen order, then each field's files in order
        parts = []
        for field in form.keys():
            for value in form.getlist(field):
                if isinstance(value, UploadFile):
                    parts.append(value)
        return parts

    async def _ingest_file(self, upload: UploadFile, destination: Path, rename: bool) -> UploadedFile:
        original_name = upload.filename or ""

        self.validator.check_declared_size(original_name, upload.size)

        try:
            prefix = await upload.read(SNIFF_LENGTH)
        except (OSError, ValueError) as e:
            raise ReadError(f"unable to read uploaded file: {_reason(e)}", filename=original_name) from e
        if not prefix:
            raise ReadError("unable to read uploaded file: EOF", filename=original_name)

        content_type = self.validator.sniff_content_type(original_name, prefix)

        try:
            await upload.seek(0)
        except (OSError, ValueError) as e:
            raise ReadError(f"unable to rewind uploaded file: {_reason(e)}", filename=original_name) from e

        stored_name = self.validator.stored_name_for(original_name, rename)
        size = await self._write(upload, destination / stored_name, original_name)

        log_upload_event(
            action="stored",
            original_name=original_name,
            stored_name=stored_name,
            size_bytes=size,
            destination=str(destination),
            details={"content_type": content_type, "renamed": rename},
        )

        return UploadedFile(
            original_name=original_name,
            stored_name=stored_name,
            size_bytes=size,
            content_type=content_type,
        )

    async def _write(self, upload: UploadFile, target: Path, original_name: str) -> int:
        try:
            out = await run_in_threadpool(open, target, "wb")
        except OSError as e:
            raise WriteError(
                f"unable to create {target.name}: {_reason(e)}",
                filename=original_name,
                context={"filename": original_name, "path": str(target)},
            ) from e

        size = 0
        try:
            while True:
                chunk = await upload.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                await run_in_threadpool(out.write, chunk)
                size += len(chunk)
        except (OSError, ValueError) as e:
            raise WriteError(
                f"unable to write {target.name}: {_reason(e)}",
                filename=original_name,
                context={"filename": original_name, "path": str(target)},
            ) from e
        finally:
            await run_in_threadpool(out.close)

        logger.debug(f"Wrote {size} bytes to {target}")
        return size
