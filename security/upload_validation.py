import posixpath
import re
from typing import FrozenSet, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from common.exceptions import ContentTypeError, SizeError
from common.logging import log_security_event
from common.sniffing import SNIFF_LENGTH, detect_content_type
from common.strings import gen_random_string
from config.config import Settings

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_RANDOM_NAME_LENGTH = 25

# Names that would escape the destination directory if used verbatim
TRAVERSAL_PATTERNS = [
    r'\.\.',            # Parent directory
    r'/',               # POSIX separator
    r'\\',              # Windows separator
    r'[\x00-\x1f]',     # Control characters
]


class UploadPolicy(BaseModel):
    """Immutable per-ingestor upload policy."""

    model_config = ConfigDict(frozen=True)

    max_file_size_bytes: int = Field(DEFAULT_MAX_FILE_SIZE, gt=0)
    allowed_content_types: FrozenSet[str] = Field(default_factory=frozenset)
    max_request_size_bytes: Optional[int] = Field(None, gt=0)
    random_name_length: int = Field(DEFAULT_RANDOM_NAME_LENGTH, ge=1)

    @field_validator("allowed_content_types", mode="before")
    @classmethod
    def _normalize_types(cls, value: Optional[Iterable[str]]) -> FrozenSet[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        return frozenset(v.strip() for v in value if v and v.strip())

    @classmethod
    def from_settings(cls, settings: Settings) -> "UploadPolicy":
        return cls(
            max_file_size_bytes=settings.upload_max_file_size_bytes,
            allowed_content_types=settings.upload_allowed_content_types,
            max_request_size_bytes=settings.upload_max_request_size_bytes,
            random_name_length=settings.random_name_length,
        )

    def allows(self, content_type: str) -> bool:
        """Case-insensitive allow-list check; an empty list allows everything."""
        if not self.allowed_content_types:
            return True
        wanted = content_type.lower()
        return any(allowed.lower() == wanted for allowed in self.allowed_content_types)


def file_extension(filename: str) -> str:
    """Extension of the final path element, from the last ``.`` onward."""
    dot = filename.rfind(".")
    if dot == -1:
        return ""
    ext = filename[dot:]
    if "/" in ext or "\\" in ext:
        return ""
    return ext


def looks_like_traversal(filename: str) -> bool:
    return any(re.search(pattern, filename) for pattern in TRAVERSAL_PATTERNS)


class UploadValidator:
    """
    Per-file policy checks applied by the upload ingestor.

    The checks run against a single file part:
    - declared size against ``max_file_size_bytes``
    - sniffed content type against ``allowed_content_types``
    - stored name computation (random token or verbatim client name)
    """

    def __init__(self, policy: UploadPolicy):
        self.policy = policy

    def check_declared_size(self, filename: str, size: Optional[int]) -> None:
        limit = self.policy.max_file_size_bytes
        if size is not None and size > limit:
            raise SizeError(filename, size, limit)

    def sniff_content_type(self, filename: str, prefix: bytes) -> str:
        """
        Detect the content type of a file from its leading bytes and enforce
        the allow-list.

        Args:
            filename: Client supplied file name (for error reporting only)
            prefix: Up to the first 512 bytes of the file

        Returns:
            Detected MIME type

        Raises:
            ContentTypeError: If the allow-list is non-empty and lacks the type
        """
        content_type = detect_content_type(prefix[:SNIFF_LENGTH])
        if not self.policy.allows(content_type):
            raise ContentTypeError(
                filename,
                content_type,
                allowed=sorted(self.policy.allowed_content_types),
            )
        return content_type

    def stored_name_for(self, filename: str, rename: bool) -> str:
        """Name to use on disk.

        Verbatim names are not sanitized. Names that could traverse out of the
        destination are only flagged.
        """
        if rename:
            return gen_random_string(self.policy.random_name_length) + file_extension(filename)

        if looks_like_traversal(filename):
            log_security_event(
                event_type="UNSANITIZED_UPLOAD_NAME",
                details={"filename": filename, "basename": posixpath.basename(filename)},
            )
        return filename
