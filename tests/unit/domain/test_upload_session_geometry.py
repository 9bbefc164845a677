from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from src.domain.models.upload_session import (
    MAX_CHUNK_SIZE,
    MIN_CHUNK_SIZE,
    UploadedPart,
    UploadSession,
    clamp_chunk_size,
    compute_total_chunks,
)

MiB = 1024 * 1024


def make_session(total_size: int, chunk_size: int = 5 * MiB) -> UploadSession:
    return UploadSession.create(
        remote_session_id="remote-1",
        owner_id=uuid4(),
        storage_key="raw/general/k_file.mov",
        filename="file.mov",
        mime_type="video/quicktime",
        category="raw",
        total_size_bytes=total_size,
        chunk_size_bytes=chunk_size,
        ttl_hours=24,
    )


def test_chunk_size_is_clamped():
    assert clamp_chunk_size(None) == 5 * MiB
    assert clamp_chunk_size(1024) == MIN_CHUNK_SIZE
    assert clamp_chunk_size(10 * 1024 * MiB) == MAX_CHUNK_SIZE
    assert clamp_chunk_size(8 * MiB) == 8 * MiB


def test_two_gigabyte_file_needs_382_default_chunks():
    assert compute_total_chunks(2_000_000_000, clamp_chunk_size(None)) == 382


def test_last_part_holds_the_remainder():
    session = make_session(12 * MiB)
    assert session.total_chunks == 3
    assert session.part_size(1) == 5 * MiB
    assert session.part_size(3) == 2 * MiB


def test_progress_counts_distinct_parts_from_geometry():
    session = make_session(12 * MiB)
    session.uploaded_parts = [
        UploadedPart(part_number=3, checksum_tag="c"),
        UploadedPart(part_number=1, checksum_tag="a"),
    ]
    assert session.missing_part_numbers() == [2]
    assert session.bytes_uploaded == 7 * MiB
    assert session.progress_percent == 67
    assert not session.is_fully_uploaded
    assert [p.part_number for p in session.sorted_parts()] == [1, 3]


def test_part_ownership_bounds():
    session = make_session(12 * MiB)
    assert session.owns_part(1)
    assert session.owns_part(3)
    assert not session.owns_part(0)
    assert not session.owns_part(4)


def test_expiry_uses_ttl():
    session = make_session(MiB)
    assert not session.is_expired()
    assert session.is_expired(datetime.now(timezone.utc) + timedelta(hours=25))
