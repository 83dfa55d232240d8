from pathlib import Path

from fastapi.testclient import TestClient

from filedrop.clock import MS_PER_DAY
from filedrop.main import create_app


def upload(client, data=b"hello drop", name="hello.txt", content_type="text/plain"):
    return client.post("/api/upload", files={"file": (name, data, content_type)})


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok", "database": "connected"}


def test_upload_then_duplicate(client):
    first = upload(client)
    assert first.status_code == 201
    body = first.json()
    assert len(body["code"]) == 6
    assert body["deduplicated"] is False
    assert body["url"].startswith("/uploadfiles/")
    assert "expireDate" in body

    second = upload(client, name="copy.txt")
    assert second.status_code == 200
    assert second.json()["code"] == body["code"]
    assert second.json()["deduplicated"] is True


def test_upload_without_file(client):
    resp = client.post("/api/upload", data={"other": "field"})
    assert resp.status_code == 400


def test_stream_upload(client):
    resp = client.put(
        "/api/upload/stream",
        params={"name": "streamed.csv"},
        content=b"a,b\n1,2\n",
        headers={"content-type": "text/csv"},
    )
    assert resp.status_code == 201
    record = client.get(f"/api/files/code/{resp.json()['code']}").json()
    assert record["name"] == "streamed.csv"
    assert record["type"] == "text/csv"
    assert record["size"] == 8


def test_stream_upload_requires_name(client):
    assert client.put("/api/upload/stream", content=b"data").status_code == 400


def test_lookup_and_download_by_code(client):
    code = upload(client, data=b"file body").json()["code"]

    record = client.get(f"/api/files/code/{code.lower()}")
    assert record.status_code == 200
    assert record.json()["storageType"] == "localFile"
    assert record.json()["downloadCount"] == 0

    download = client.get(f"/api/files/code/{code}/download")
    assert download.status_code == 200
    assert download.content == b"file body"
    assert "hello.txt" in download.headers["content-disposition"]

    file_id = record.json()["id"]
    assert client.get(f"/api/files/{file_id}").json()["downloadCount"] == 1
    assert client.patch(f"/api/files/{file_id}/download").json()["downloadCount"] == 2


def test_lookup_by_hash(client):
    body = upload(client).json()
    assert client.get(f"/api/files/hash/{body['hash']}").json()["id"] == body["id"]
    assert client.get(f"/api/files/hash/{'0' * 64}").status_code == 404


def test_unknown_code_and_id(client):
    assert client.get("/api/files/code/ZZZZZZ").json() == {"detail": "File not found"}
    assert client.get("/api/files/not-a-uuid").status_code == 404
    assert client.patch("/api/files/00000000-0000-0000-0000-000000000000/download").status_code == 404


def test_expired_code_returns_410(client, clock):
    code = upload(client).json()["code"]
    clock.advance(8 * MS_PER_DAY)
    resp = client.get(f"/api/files/code/{code}")
    assert resp.status_code == 410
    assert resp.json() == {"detail": "File has expired"}


def test_public_file_serving(client):
    body = upload(client, data=b"served bytes", name="notes.md", content_type="text/markdown").json()
    resp = client.get(body["url"])
    assert resp.status_code == 200
    assert resp.content == b"served bytes"
    assert "notes.md" in resp.headers["content-disposition"]

    assert client.get("/uploadfiles/ZZZZZZ_1.txt").status_code == 404


def test_admin_routes_require_login(client):
    body = upload(client).json()
    assert client.get("/api/files").status_code == 401
    assert client.get("/api/files/usage").status_code == 401
    assert client.delete(f"/api/files/{body['id']}").status_code == 401
    assert client.post("/api/settings", json={"defaultExpireDays": 1}).status_code == 401


def test_admin_listing_and_usage(admin_client):
    upload(admin_client, data=b"12345")
    upload(admin_client, data=b"1234567890", name="b.txt")

    files = admin_client.get("/api/files").json()
    assert sorted(f["name"] for f in files) == ["b.txt", "hello.txt"]

    usage = admin_client.get("/api/files/usage").json()
    assert usage == {"usedBytes": 15, "limitBytes": 100 * 1024 * 1024, "fileCount": 2}


def test_delete_when_physical_file_already_removed(admin_client, config):
    body = upload(admin_client).json()
    record = admin_client.get(f"/api/files/{body['id']}").json()
    (Path(config.FILE_STORAGE_PATH) / record["storagePath"]).unlink()

    resp = admin_client.delete(f"/api/files/{body['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert admin_client.get(f"/api/files/{body['id']}").status_code == 404
    assert admin_client.delete(f"/api/files/{body['id']}").status_code == 404


def test_settings_roundtrip_masks_secret(admin_client, oss_config):
    defaults = admin_client.get("/api/settings").json()
    assert defaults["storageLimitMB"] == 100
    assert defaults["installDate"] is not None

    resp = admin_client.post("/api/settings", json={"defaultExpireDays": 0, "ossConfig": oss_config})
    assert resp.status_code == 200
    saved = resp.json()
    assert saved["defaultExpireDays"] == 0
    assert saved["ossConfig"]["accessKeySecret"] == "********"
    assert saved["ossConfig"]["bucket"] == "drop-bucket"
    assert saved["storageLimitMB"] == 100

    body = upload(admin_client).json()
    assert body["expireDate"] is None


def test_settings_validation(admin_client):
    assert admin_client.post("/api/settings", json={"maxFileSizeMB": 0}).status_code == 422
    assert admin_client.post("/api/settings", json={"storageType": "ftp"}).status_code == 422


def test_oversize_upload_rejected(admin_client):
    admin_client.post("/api/settings", json={"maxFileSizeMB": 0.001})
    resp = upload(admin_client, data=b"x" * 5000)
    assert resp.status_code == 413
    assert "0.001MB" in resp.json()["detail"]


def test_object_store_download_redirects(admin_client, fake_s3, oss_config):
    admin_client.post("/api/settings", json={"storageType": "oss", "ossConfig": oss_config})
    body = upload(admin_client, data=b"in the cloud").json()
    assert ("drop-bucket", f"uploads/{body['url'].rsplit('/', 1)[-1]}") in fake_s3.objects

    resp = admin_client.get(f"/api/files/code/{body['code']}/download", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"].startswith("https://signed.example.com/drop-bucket/uploads/")

    assert admin_client.delete(f"/api/files/{body['id']}").status_code == 200
    assert fake_s3.objects == {}


def test_unconfigured_object_store_upload(admin_client):
    admin_client.post("/api/settings", json={"storageType": "oss"})
    resp = upload(admin_client)
    assert resp.status_code == 400
    assert "not fully configured" in resp.json()["detail"]


def test_public_uploads_can_be_disabled(admin_client):
    admin_client.post("/api/settings", json={"allowPublicUploads": False})
    assert upload(admin_client).status_code == 201

    admin_client.cookies.clear()
    assert upload(admin_client, data=b"anonymous").status_code == 403


def test_auth_flow(client, config):
    assert client.post("/api/auth/verify", json={}).status_code == 400
    assert client.post("/api/auth/verify", json={"password": "nope"}).status_code == 401
    assert client.get("/api/auth/check").status_code == 401

    login = client.post("/api/auth/verify", json={"password": config.ADMIN_PASSWORD})
    assert login.status_code == 200
    assert login.json()["success"] is True
    assert client.get("/api/auth/check").json() == {"authenticated": True}

    assert client.post("/api/auth/logout").json() == {"success": True}
    assert client.get("/api/auth/check").status_code == 401


def test_request_body_limit(config, clock, fake_s3):
    small = config.model_copy(update={"MAX_REQUEST_BODY_MB": 0.001})
    app = create_app(small, clock=clock, s3_client_factory=lambda cfg: fake_s3)
    with TestClient(app) as c:
        resp = upload(c, data=b"x" * 5000)
    assert resp.status_code == 413
    assert resp.json() == {"detail": "Request body too large"}
