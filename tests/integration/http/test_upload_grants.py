from __future__ import annotations

from sqlalchemy import func, select

from src.infrastructure.db.orm.stored_asset import StoredAssetORM
from src.infrastructure.db.orm.upload_grant import UploadGrantORM

MiB = 1024 * 1024


async def _issue(client, headers, **overrides) -> dict:
    payload = {
        "category": "avatar",
        "filename": "me.png",
        "mime_type": "image/png",
        "size_bytes": 200_000,
        **overrides,
    }
    resp = await client.post("/api/v1/uploads/grants", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _asset_count(app) -> int:
    async with app.state.session_factory() as session:
        return (await session.execute(select(func.count(StoredAssetORM.id)))).scalar_one()


async def test_avatar_grant_round_trip(app, client, storage, seeded_profiles, auth_headers):
    user_id = seeded_profiles["client"]
    headers = auth_headers(user_id)
    grant = await _issue(client, headers)

    assert grant["storage_key"].startswith(f"profiles/{user_id}/avatar/")
    assert grant["max_size_bytes"] == 200_000
    assert grant["headers"] == {"Content-Type": "image/png"}
    assert grant["token"]

    storage.put_object(grant["storage_key"], 200_000, "image/png")
    resp = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert resp.status_code == 200, resp.text
    asset = resp.json()
    assert asset["category"] == "avatar"
    assert asset["visibility"] == "public"
    assert asset["size_bytes"] == 200_000
    assert asset["owner_id"] == str(user_id)

    # Completing the same grant again is a no-op returning the recorded asset
    again = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert again.status_code == 200
    assert again.json()["id"] == asset["id"]
    assert await _asset_count(app) == 1


async def test_oversized_avatar_is_denied_before_signing(
    app, client, storage, seeded_profiles, auth_headers
):
    payload = {
        "category": "avatar",
        "filename": "huge.png",
        "mime_type": "image/png",
        "size_bytes": 6_000_000,
    }
    resp = await client.post(
        "/api/v1/uploads/grants", json=payload, headers=auth_headers(seeded_profiles["client"])
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "policy_denied"
    assert "too large" in body["message"]
    assert storage.calls == []
    async with app.state.session_factory() as session:
        grants = (await session.execute(select(UploadGrantORM))).scalars().all()
        assert grants == []


async def test_disallowed_mime_type_is_denied(client, storage, seeded_profiles, auth_headers):
    resp = await client.post(
        "/api/v1/uploads/grants",
        json={
            "category": "avatar",
            "filename": "cv.pdf",
            "mime_type": "application/pdf",
            "size_bytes": 1000,
        },
        headers=auth_headers(seeded_profiles["admin"]),
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "policy_denied"


async def test_complete_without_object_reports_missing(
    app, client, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["client"])
    grant = await _issue(client, headers)

    resp = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "upload_missing"
    assert await _asset_count(app) == 0


async def test_missing_object_can_be_retried_once_uploaded(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["client"])
    grant = await _issue(client, headers)
    first = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert first.status_code == 404

    storage.put_object(grant["storage_key"], 200_000, "image/png")
    second = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert second.status_code == 200, second.text


async def test_object_larger_than_grant_fails_verification(
    app, client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["client"])
    grant = await _issue(client, headers)
    storage.put_object(grant["storage_key"], 6 * MiB, "image/png")

    resp = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "verification_failed"
    assert await _asset_count(app) == 0

    # The grant is spent; a retry cannot record the oversized object
    retry = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert retry.status_code == 410
    assert retry.json()["code"] == "upload_expired"


async def test_object_larger_than_declared_size_fails_verification(
    app, client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["client"])
    grant = await _issue(client, headers, size_bytes=1000)
    assert grant["max_size_bytes"] == 1000

    # Still under the 5 MiB avatar ceiling, but not what the client declared
    storage.put_object(grant["storage_key"], 4 * MiB, "image/png")
    resp = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "verification_failed"
    assert body["details"] == {"size_bytes": 4 * MiB, "max_size_bytes": 1000}
    assert await _asset_count(app) == 0


async def test_object_with_other_content_type_fails_verification(
    client, storage, seeded_profiles, auth_headers
):
    headers = auth_headers(seeded_profiles["client"])
    grant = await _issue(client, headers)
    storage.put_object(grant["storage_key"], 1000, "text/html")

    resp = await client.post(
        "/api/v1/uploads/grants/complete", json={"token": grant["token"]}, headers=headers
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "verification_failed"


async def test_grant_belongs_to_its_owner(client, storage, seeded_profiles, auth_headers):
    grant = await _issue(client, auth_headers(seeded_profiles["client"]))
    storage.put_object(grant["storage_key"], 1000, "image/png")

    resp = await client.post(
        "/api/v1/uploads/grants/complete",
        json={"token": grant["token"]},
        headers=auth_headers(seeded_profiles["team"]),
    )
    assert resp.status_code == 403


async def test_unknown_token_is_not_found(client, seeded_profiles, auth_headers):
    resp = await client.post(
        "/api/v1/uploads/grants/complete",
        json={"token": "does-not-exist"},
        headers=auth_headers(seeded_profiles["client"]),
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


async def test_signing_failure_surfaces_as_storage_unavailable(
    app, client, storage, seeded_profiles, auth_headers
):
    storage.fail_signing = True
    payload = {
        "category": "avatar",
        "filename": "me.png",
        "mime_type": "image/png",
        "size_bytes": 1000,
    }
    resp = await client.post(
        "/api/v1/uploads/grants", json=payload, headers=auth_headers(seeded_profiles["client"])
    )
    assert resp.status_code == 502
    assert resp.json()["code"] == "storage_unavailable"
    async with app.state.session_factory() as session:
        grants = (await session.execute(select(UploadGrantORM))).scalars().all()
        assert grants == []


async def test_requests_without_token_are_rejected(client):
    resp = await client.post(
        "/api/v1/uploads/grants",
        json={"category": "avatar", "filename": "a.png", "mime_type": "image/png", "size_bytes": 1},
    )
    assert resp.status_code == 401
