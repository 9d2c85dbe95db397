"""
Shared pytest fixtures for the handler toolkit tests.

Provides:
- An isolated upload directory per test
- A TestClient factory that wires a custom UploadPolicy into the app
- Small payload factories (PNG bytes, text bytes, raw multipart bodies)
"""

import os

# Must be set before the app (and its settings) is imported
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from dependencies import get_upload_dir, get_upload_ingestor
from security.upload_validation import UploadPolicy
from services.uploads import UploadIngestor

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + bytes(range(64))
TEXT_BYTES = b"hello, uploaded world\n"


@pytest.fixture
def upload_dir(tmp_path):
    """Destination directory; not created up front so ingestion must create it."""
    return tmp_path / "uploads"


@pytest.fixture
def make_client(upload_dir):
    """
    Build a TestClient whose upload endpoints use the given policy fields.

    Yields:
        Callable accepting UploadPolicy keyword arguments
    """
    from app import app

    def _make(**policy_fields) -> TestClient:
        ingestor = UploadIngestor(UploadPolicy(**policy_fields))
        app.dependency_overrides[get_upload_ingestor] = lambda: ingestor
        app.dependency_overrides[get_upload_dir] = lambda: str(upload_dir)
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    """TestClient with the default policy."""
    return make_client()


def build_multipart(fields, boundary: str = "toolkit-test-boundary"):
    """
    Hand-build a multipart/form-data body.

    Args:
        fields: Iterable of (name, value) for plain fields or
            (name, (filename, bytes)) for file parts

    Returns:
        Tuple of (body bytes, content-type header value)
    """
    lines = []
    for name, value in fields:
        lines.append(f"--{boundary}\r\n".encode())
        if isinstance(value, tuple):
            filename, content = value
            lines.append(
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                "Content-Type: application/octet-stream\r\n\r\n".encode()
            )
            lines.append(content)
        else:
            lines.append(f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode())
            lines.append(value.encode())
        lines.append(b"\r\n")
    lines.append(f"--{boundary}--\r\n".encode())
    return b"".join(lines), f"multipart/form-data; boundary={boundary}"
