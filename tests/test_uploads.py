"""
End-to-end tests for the upload endpoints (api/uploads.py -> services/uploads.py).
"""

import logging
import os

from tests.conftest import PNG_BYTES, TEXT_BYTES, build_multipart

TEXT_TYPE = "text/plain; charset=utf-8"


def _stored(upload_dir):
    return sorted(p.name for p in upload_dir.iterdir())


# ========== Happy paths ==========

def test_rename_keeps_extension(client, upload_dir):
    response = client.post("/v1/uploads", files=[("files", ("photo.png", PNG_BYTES, "image/png"))])

    assert response.status_code == 201
    body = response.json()
    assert body["error"] is False
    (uploaded,) = body["data"]
    assert uploaded["original_name"] == "photo.png"
    assert uploaded["stored_name"].endswith(".png")
    assert len(uploaded["stored_name"]) == 25 + len(".png")
    assert uploaded["content_type"] == "image/png"
    assert uploaded["size_bytes"] == len(PNG_BYTES)
    assert (upload_dir / uploaded["stored_name"]).read_bytes() == PNG_BYTES


def test_rename_without_extension(client):
    response = client.post("/v1/uploads", files=[("files", ("README", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 201
    assert len(response.json()["data"][0]["stored_name"]) == 25


def test_rename_uses_last_extension_only(client):
    response = client.post("/v1/uploads", files=[("files", ("backup.tar.gz", b"\x1f\x8b\x08\x00", "application/gzip"))])

    stored_name = response.json()["data"][0]["stored_name"]
    assert stored_name.endswith(".gz")
    assert len(stored_name) == 25 + len(".gz")


def test_verbatim_name(client, upload_dir):
    response = client.post("/v1/uploads?rename=false", files=[("files", ("notes.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 201
    (uploaded,) = response.json()["data"]
    assert uploaded["stored_name"] == "notes.txt"
    assert uploaded["content_type"] == TEXT_TYPE
    assert (upload_dir / "notes.txt").read_bytes() == TEXT_BYTES


def test_creates_missing_destination(client, upload_dir):
    assert not upload_dir.exists()
    response = client.post("/v1/uploads", files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 201
    assert upload_dir.is_dir()


def test_multiple_files_in_form_order(client, upload_dir):
    body, content_type = build_multipart([
        ("b", ("one.txt", b"first\n")),
        ("a", ("two.txt", b"second\n")),
        ("b", ("three.txt", b"third\n")),
    ])
    response = client.post("/v1/uploads?rename=false", content=body, headers={"Content-Type": content_type})

    assert response.status_code == 201
    names = [f["original_name"] for f in response.json()["data"]]
    # grouped by field name in first-seen order
    assert names == ["one.txt", "three.txt", "two.txt"]
    assert _stored(upload_dir) == ["one.txt", "three.txt", "two.txt"]


def test_plain_fields_are_ignored(client):
    body, content_type = build_multipart([
        ("title", "holiday"),
        ("files", ("a.txt", TEXT_BYTES)),
    ])
    response = client.post("/v1/uploads", content=body, headers={"Content-Type": content_type})

    assert response.status_code == 201
    assert len(response.json()["data"]) == 1


def test_no_files_is_an_empty_batch(client):
    body, content_type = build_multipart([("title", "holiday")])
    response = client.post("/v1/uploads", content=body, headers={"Content-Type": content_type})

    assert response.status_code == 201
    assert response.json()["data"] == []


def test_sniffing_ignores_declared_type(client):
    response = client.post("/v1/uploads", files=[("files", ("fake.png", TEXT_BYTES, "image/png"))])

    assert response.json()["data"][0]["content_type"] == TEXT_TYPE


# ========== Policy ==========

def test_file_too_big(make_client, upload_dir):
    client = make_client(max_file_size_bytes=10)
    response = client.post("/v1/uploads", files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 413
    body = response.json()
    assert body["error"] is True
    assert body["message"].startswith("the uploaded file is too big")
    assert "data" not in body
    assert _stored(upload_dir) == []


def test_file_at_the_limit_is_accepted(make_client):
    client = make_client(max_file_size_bytes=len(TEXT_BYTES))
    response = client.post("/v1/uploads", files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 201


def test_content_type_not_allowed(make_client, upload_dir):
    client = make_client(allowed_content_types={"image/png"})
    response = client.post("/v1/uploads", files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 415
    assert response.json()["message"] == f"the uploaded file type is not permitted: {TEXT_TYPE}"
    assert _stored(upload_dir) == []


def test_content_type_match_is_case_insensitive(make_client):
    client = make_client(allowed_content_types={"IMAGE/PNG"})
    response = client.post("/v1/uploads", files=[("files", ("photo.png", PNG_BYTES, "image/png"))])

    assert response.status_code == 201


def test_empty_allow_list_accepts_anything(make_client):
    client = make_client(allowed_content_types=set())
    response = client.post("/v1/uploads", files=[("files", ("blob.bin", b"\x00\x01\x02\x03", "application/octet-stream"))])

    assert response.status_code == 201
    assert response.json()["data"][0]["content_type"] == "application/octet-stream"


def test_batch_stops_at_first_failure(make_client, upload_dir):
    client = make_client(allowed_content_types={TEXT_TYPE})
    response = client.post(
        "/v1/uploads?rename=false",
        files=[
            ("files", ("a.txt", TEXT_BYTES, "text/plain")),
            ("files", ("b.png", PNG_BYTES, "image/png")),
            ("files", ("c.txt", TEXT_BYTES, "text/plain")),
        ],
    )

    assert response.status_code == 415
    body = response.json()
    assert [f["original_name"] for f in body["data"]] == ["a.txt"]
    # a.txt stays on disk; nothing after the failure is written
    assert _stored(upload_dir) == ["a.txt"]


# ========== Failures ==========

def test_zero_length_file_is_read_error(client, upload_dir):
    response = client.post("/v1/uploads", files=[("files", ("empty.txt", b"", "text/plain"))])

    assert response.status_code == 400
    assert response.json()["message"] == "unable to read uploaded file: EOF"
    assert _stored(upload_dir) == []


def test_not_multipart(client):
    response = client.post("/v1/uploads", content=b"hello", headers={"Content-Type": "text/plain"})

    assert response.status_code == 400
    assert response.json()["message"] == "request Content-Type isn't multipart/form-data"


def test_missing_boundary(client):
    response = client.post("/v1/uploads", content=b"hello", headers={"Content-Type": "multipart/form-data"})

    assert response.status_code == 400
    assert response.json()["message"] == "no multipart boundary param in Content-Type"


def test_request_size_cap(make_client, upload_dir):
    client = make_client(max_request_size_bytes=100)
    response = client.post("/v1/uploads", files=[("files", ("big.bin", b"\x00" * 1000, "application/octet-stream"))])

    assert response.status_code == 400
    assert response.json()["message"].startswith("unable to parse multipart form")
    assert _stored(upload_dir) == []


def test_oversized_plain_field_is_parse_error(make_client):
    client = make_client(max_file_size_bytes=16)
    body, content_type = build_multipart([
        ("note", "x" * 64),
        ("files", ("a.txt", b"tiny\n")),
    ])
    response = client.post("/v1/uploads", content=body, headers={"Content-Type": content_type})

    assert response.status_code == 400
    assert response.json()["message"].startswith("unable to parse multipart form")


def test_destination_is_a_file(client, upload_dir):
    upload_dir.write_text("in the way")
    response = client.post("/v1/uploads", files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 500
    assert "not a directory" in response.json()["message"]
    assert str(upload_dir) not in response.json()["message"]


def test_verbatim_traversal_name_is_flagged_not_sanitized(client, upload_dir, caplog):
    body, content_type = build_multipart([("files", ("../escape.txt", TEXT_BYTES))])
    with caplog.at_level(logging.WARNING, logger="security"):
        response = client.post("/v1/uploads?rename=false", content=body, headers={"Content-Type": content_type})

    assert response.status_code == 201
    assert response.json()["data"][0]["stored_name"] == "../escape.txt"
    assert (upload_dir.parent / "escape.txt").read_bytes() == TEXT_BYTES
    assert any(getattr(r, "event_type", None) == "UNSANITIZED_UPLOAD_NAME" for r in caplog.records)


# ========== /single ==========

def test_single_upload(client, upload_dir):
    response = client.post("/v1/uploads/single?rename=false", files=[("file", ("a.txt", TEXT_BYTES, "text/plain"))])

    assert response.status_code == 201
    body = response.json()
    assert body["data"]["original_name"] == "a.txt"
    assert body["message"] == "File 'a.txt' uploaded"
    assert _stored(upload_dir) == ["a.txt"]


def test_single_upload_without_files(client):
    body, content_type = build_multipart([("title", "holiday")])
    response = client.post("/v1/uploads/single", content=body, headers={"Content-Type": content_type})

    assert response.status_code == 400
    assert response.json() == {"error": True, "message": "no files were uploaded"}


def test_request_id_header(client):
    response = client.post(
        "/v1/uploads",
        files=[("files", ("a.txt", TEXT_BYTES, "text/plain"))],
        headers={"X-Request-ID": "req-123"},
    )

    assert response.headers["X-Request-ID"] == "req-123"


# ========== Large files ==========

def test_large_file_round_trip(client, upload_dir):
    # multi-chunk copy of a part Starlette spooled to disk, sniffed then rewound
    payload = os.urandom(3 * 1024 * 1024 + 7)
    response = client.post("/v1/uploads", files=[("files", ("big.bin", payload, "application/octet-stream"))])

    assert response.status_code == 201
    (uploaded,) = response.json()["data"]
    assert uploaded["size_bytes"] == len(payload)
    assert (upload_dir / uploaded["stored_name"]).read_bytes() == payload


def test_spooled_file_too_big(make_client, upload_dir):
    limit = 2 * 1024 * 1024
    client = make_client(max_file_size_bytes=limit)
    response = client.post("/v1/uploads", files=[("files", ("big.bin", b"\x00" * (limit + 1), "application/octet-stream"))])

    assert response.status_code == 413
    assert _stored(upload_dir) == []


# ========== Write failures ==========

def test_write_failure_keeps_earlier_files(client, upload_dir, tmp_path):
    upload_dir.mkdir()
    (upload_dir / "taken").mkdir()
    response = client.post(
        "/v1/uploads?rename=false",
        files=[
            ("files", ("a.txt", TEXT_BYTES, "text/plain")),
            ("files", ("taken", TEXT_BYTES, "text/plain")),
            ("files", ("c.txt", TEXT_BYTES, "text/plain")),
        ],
    )

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "unable to create taken: Is a directory"
    assert str(tmp_path) not in body["message"]
    assert [f["original_name"] for f in body["data"]] == ["a.txt"]
    assert _stored(upload_dir) == ["a.txt", "taken"]
    assert (upload_dir / "a.txt").read_bytes() == TEXT_BYTES
