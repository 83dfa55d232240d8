"""Shared fixtures: throwaway SQLite database, pinned clock, in-memory S3."""
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from filedrop.config import Settings
from filedrop.database import build_engine, build_session_factory
from filedrop.main import create_app
from filedrop.models import Base
from filedrop.services.container import build_services

START_MS = 1_700_000_000_000
ADMIN_PASSWORD = "test-admin-pw"


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeS3Client:
    """The subset of the boto3 S3 client the object store backend calls."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}
        self.fail_uploads = False
        self.fail_deletes = False

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None):
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "PutObject")
        self.objects[(Bucket, Key)] = Fileobj.read()
        self.content_types[(Bucket, Key)] = (ExtraArgs or {}).get("ContentType")

    def head_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ContentLength": len(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket, Key):
        if self.fail_deletes:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "DeleteObject")
        self.objects.pop((Bucket, Key), None)
        return {}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return f"https://signed.example.com/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


def _iter_bytes(data: bytes, chunk_size: int = 64 * 1024):
    async def gen():
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
    return gen()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def byte_stream():
    """Factory turning bytes into the async chunk iterator uploads consume."""
    return _iter_bytes


@pytest.fixture
def oss_config():
    return {
        "endpoint": "s3.example.com",
        "bucket": "drop-bucket",
        "region": "us-east-1",
        "accessKeyId": "AKIDEXAMPLE",
        "accessKeySecret": "very-secret",
    }


@pytest.fixture
def config(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'filedrop.db'}",
        FILE_STORAGE_PATH=str(tmp_path / "uploadfiles"),
        UPLOAD_STAGING_PATH=str(tmp_path / "staging"),
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        REAPER_INITIAL_DELAY_SECONDS=3600,
        UPLOAD_CHUNK_SIZE=64 * 1024,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
async def session_factory(config):
    engine = build_engine(config.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def services(config, session_factory, clock, fake_s3):
    return build_services(config, session_factory, clock=clock, s3_client_factory=lambda cfg: fake_s3)


@pytest.fixture
def client(config, clock, fake_s3):
    app = create_app(config, clock=clock, s3_client_factory=lambda cfg: fake_s3)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(client):
    resp = client.post("/api/auth/verify", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    return client
