from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select, update

from src.infrastructure.db.orm.activity_log import ActivityLogORM
from src.infrastructure.db.orm.processing_job import ProcessingJobORM
from src.infrastructure.db.orm.stored_asset import StoredAssetORM
from src.infrastructure.db.orm.upload_session import UploadSessionORM
from src.infrastructure.scheduler.upload_cleanup import sweep_expired_uploads

MiB = 1024 * 1024


def _remote_upload_id(storage, storage_key: str) -> str:
    return next(u for u, m in storage.multipart.items() if m.key == storage_key)


async def _start_session(client, headers, total_size: int, **extra) -> dict:
    payload = {
        "category": "raw",
        "filename": "Day 1 - Camera A.mov",
        "mime_type": "video/quicktime",
        "total_size_bytes": total_size,
        **extra,
    }
    resp = await client.post("/api/v1/uploads/sessions", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _upload_and_report(client, storage, headers, body: dict, part_numbers) -> None:
    upload_id = _remote_upload_id(storage, body["storage_key"])
    total = body["total_chunks"]
    chunk = body["chunk_size_bytes"]
    total_size = body["_total_size"]
    for n in part_numbers:
        size = chunk if n < total else total_size - chunk * (total - 1)
        etag = storage.upload_part(upload_id, n, size)
        resp = await client.put(
            f"/api/v1/uploads/sessions/{body['session_id']}/parts/{n}",
            json={"etag": etag},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text


async def test_chunked_upload_end_to_end(app, client, storage, seeded_profiles, auth_headers):
    headers = auth_headers(seeded_profiles["team"])
    total_size = 12 * MiB
    body = await _start_session(client, headers, total_size)
    body["_total_size"] = total_size

    assert body["total_chunks"] == 3
    assert body["chunk_size_bytes"] == 5 * MiB
    assert [p["part_number"] for p in body["part_urls"]] == [1, 2, 3]
    assert body["storage_key"].startswith("raw/general/")
    assert body["storage_key"].endswith("_Day_1_-_Camera_A.mov")

    await _upload_and_report(client, storage, headers, body, [2, 3, 1])

    status_resp = await client.get(
        f"/api/v1/uploads/sessions/{body['session_id']}", headers=headers
    )
    assert status_resp.status_code == 200
    progress = status_resp.json()
    assert progress["progress"] == 100
    assert progress["uploaded_parts"] == [1, 2, 3]
    assert progress["bytes_uploaded"] == total_size

    done = await client.post(
        f"/api/v1/uploads/sessions/{body['session_id']}/complete", headers=headers
    )
    assert done.status_code == 200, done.text
    asset = done.json()
    assert asset["size_bytes"] == total_size
    assert asset["category"] == "raw"
    assert asset["visibility"] == "restricted"
    assert storage.completed_part_orders == [[1, 2, 3]]

    # Retrying completion returns the same asset without touching the backend again
    again = await client.post(
        f"/api/v1/uploads/sessions/{body['session_id']}/complete", headers=headers
    )
    assert again.status_code == 200
    assert again.json()["id"] == asset["id"]
    assert len(storage.completed_part_orders) == 1

    async with app.state.session_factory() as session:
        assets = (await session.execute(select(StoredAssetORM))).scalars().all()
        assert len(assets) == 1
        actions = (await session.execute(select(ActivityLogORM.action))).scalars().all()
        assert sorted(actions) == ["upload_completed", "upload_started"]
        jobs = (await session.execute(select(ProcessingJobORM))).scalars().all()
        assert [j.asset_id for j in jobs] == [UUID(asset["id"])]


async def test_resume_lists_only_missing_parts(client, storage, seeded_profiles, auth_headers):
    headers = auth_headers(seeded_profiles["team"])
    total_size = 12 * MiB
    body = await _start_session(client, headers, total_size)
    body["_total_size"] = total_size
    await _upload_and_report(client, storage, headers, body, [1, 3])

    resp = await client.get(
        f"/api/v1/uploads/sessions/{body['session_id']}/resume", headers=headers
    )
    assert resp.status_code == 200, resp.text
    resumed = resp.json()
    assert [p["part_number"] for p in resumed["uploaded_parts"]] == [1, 3]
    assert [p["part_number"] for p in resumed["remaining_part_urls"]] == [2]
    assert resumed["bytes_uploaded"] == 5 * MiB + 2 * MiB


async def test_duplicate_part_report_keeps_one_entry(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    body = await _start_session(client, headers, 12 * MiB)
    url = f"/api/v1/uploads/sessions/{body['session_id']}/parts/1"

    first = await client.put(url, json={"etag": '"aaa"'}, headers=headers)
    second = await client.put(url, json={"etag": '"bbb"'}, headers=headers)
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["chunks_uploaded"] == 1

    status_resp = await client.get(
        f"/api/v1/uploads/sessions/{body['session_id']}/resume", headers=headers
    )
    assert status_resp.json()["uploaded_parts"] == [{"part_number": 1, "checksum_tag": '"bbb"'}]


async def test_part_number_out_of_range_is_rejected(client, seeded_profiles, auth_headers):
    headers = auth_headers(seeded_profiles["team"])
    body = await _start_session(client, headers, 12 * MiB)
    resp = await client.put(
        f"/api/v1/uploads/sessions/{body['session_id']}/parts/4",
        json={"etag": '"abc"'},
        headers=headers,
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


async def test_complete_with_missing_parts_reports_them(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    total_size = 12 * MiB
    body = await _start_session(client, headers, total_size)
    body["_total_size"] = total_size
    await _upload_and_report(client, storage, headers, body, [1])

    resp = await client.post(
        f"/api/v1/uploads/sessions/{body['session_id']}/complete", headers=headers
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "upload_incomplete"
    assert resp.json()["details"]["missing_parts"] == [2, 3]
    assert "complete_multipart" not in storage.storage_call_names()


async def test_backend_rejection_marks_session_retryable(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    total_size = 12 * MiB
    body = await _start_session(client, headers, total_size)
    body["_total_size"] = total_size
    await _upload_and_report(client, storage, headers, body, [1, 2, 3])
    storage.reject_completion_with = "EntityTooSmall"

    rejected = await client.post(
        f"/api/v1/uploads/sessions/{body['session_id']}/complete", headers=headers
    )
    assert rejected.status_code == 502
    assert rejected.json()["code"] == "backend_rejected"
    assert rejected.json()["details"]["backend_code"] == "EntityTooSmall"

    status_resp = await client.get(
        f"/api/v1/uploads/sessions/{body['session_id']}", headers=headers
    )
    assert status_resp.json()["status"] == "completion_failed"
    assert status_resp.json()["last_error"]

    retried = await client.post(
        f"/api/v1/uploads/sessions/{body['session_id']}/complete", headers=headers
    )
    assert retried.status_code == 200, retried.text


async def test_large_deliverable_is_split_into_default_chunks(
    client, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    payload = {
        "category": "deliverable",
        "filename": "final_cut.mp4",
        "mime_type": "video/mp4",
        "total_size_bytes": 2_000_000_000,
    }
    resp = await client.post("/api/v1/uploads/sessions", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["chunk_size_bytes"] == 5 * MiB
    assert body["total_chunks"] == 382
    assert len(body["part_urls"]) == 382


async def test_client_role_cannot_upload_deliverables(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["client"])
    payload = {
        "category": "deliverable",
        "filename": "final_cut.mp4",
        "mime_type": "video/mp4",
        "total_size_bytes": 10 * MiB,
    }
    resp = await client.post("/api/v1/uploads/sessions", json=payload, headers=headers)
    assert resp.status_code == 403
    assert resp.json()["code"] == "role_not_permitted"
    assert storage.calls == []


async def test_other_users_cannot_touch_a_session(client, seeded_profiles, auth_headers):
    body = await _start_session(client, auth_headers(seeded_profiles["team"]), 12 * MiB)
    resp = await client.get(
        f"/api/v1/uploads/sessions/{body['session_id']}",
        headers=auth_headers(seeded_profiles["admin"]),
    )
    assert resp.status_code == 403


async def test_expired_session_rejects_further_work(
    app, client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    body = await _start_session(client, headers, 12 * MiB)
    session_id = UUID(body["session_id"])
    async with app.state.session_factory() as session:
        await session.execute(
            update(UploadSessionORM)
            .where(UploadSessionORM.id == session_id)
            .values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        )
        await session.commit()

    resp = await client.put(
        f"/api/v1/uploads/sessions/{session_id}/parts/1", json={"etag": '"x"'}, headers=headers
    )
    assert resp.status_code == 410
    assert resp.json()["code"] == "upload_expired"
    # The backend multipart upload is released on expiry
    assert storage.multipart == {}

    status_resp = await client.get(f"/api/v1/uploads/sessions/{session_id}", headers=headers)
    assert status_resp.json()["status"] == "expired"


async def test_abort_is_idempotent_and_closes_the_session(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    body = await _start_session(client, headers, 12 * MiB)
    url = f"/api/v1/uploads/sessions/{body['session_id']}"

    first = await client.delete(url, headers=headers)
    assert first.status_code == 200, first.text
    assert first.json()["status"] == "aborted"
    assert storage.multipart == {}

    second = await client.delete(url, headers=headers)
    assert second.status_code == 200
    assert second.json()["status"] == "aborted"

    closed = await client.post(f"{url}/complete", headers=headers)
    assert closed.status_code == 410
    assert closed.json()["code"] == "upload_closed"


async def test_sweep_releases_overdue_sessions(
    app, client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["team"])
    stale = await _start_session(client, headers, 12 * MiB)
    await _start_session(client, headers, 12 * MiB)
    async with app.state.session_factory() as session:
        await session.execute(
            update(UploadSessionORM)
            .where(UploadSessionORM.id == UUID(stale["session_id"]))
            .values(expires_at=datetime.now(timezone.utc) - timedelta(hours=1))
        )
        await session.commit()

    result = await sweep_expired_uploads(app.state.session_factory, storage)

    assert result.sessions_expired == 1
    assert result.sessions_skipped == 0
    assert len(storage.multipart) == 1
    resp = await client.get(f"/api/v1/uploads/sessions/{stale['session_id']}", headers=headers)
    assert resp.json()["status"] == "expired"
