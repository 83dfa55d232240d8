import uuid

import pytest

from filedrop.clock import MS_PER_DAY
from filedrop.errors import Expired, NotFound
from filedrop.schemas.setting import AppSettings


async def upload(services, byte_stream, data=b"payload", **settings):
    result = await services.uploads.upload(byte_stream(data), "file.txt", "text/plain", AppSettings.model_validate(settings))
    return result.record


async def test_resolve_is_case_insensitive(services, byte_stream):
    record = await upload(services, byte_stream)
    assert (await services.downloads.resolve(record.code.lower())).id == record.id


@pytest.mark.parametrize("code", ["ZZZZZZ", "short", "AB0O1I", ""])
async def test_unknown_or_malformed_code(services, code):
    with pytest.raises(NotFound):
        await services.downloads.resolve(code)


async def test_expired_record_is_refused_before_reaping(services, clock, byte_stream):
    record = await upload(services, byte_stream, defaultExpireDays=1)
    clock.advance(MS_PER_DAY)

    with pytest.raises(Expired):
        await services.downloads.resolve(record.code)
    with pytest.raises(Expired):
        await services.downloads.resolve_id(record.id)
    # Row still exists until the reaper runs
    assert await services.store.get_by_id(record.id) is not None


async def test_record_download_counts(services, byte_stream):
    record = await upload(services, byte_stream)
    await services.downloads.record_download(record.id)
    updated = await services.downloads.record_download(str(record.id))
    assert updated.download_count == 2


async def test_record_download_unknown_id(services):
    with pytest.raises(NotFound):
        await services.downloads.record_download(uuid.uuid4())


async def test_resolve_storage_path(services, byte_stream):
    record = await upload(services, byte_stream)
    assert (await services.downloads.resolve_storage_path(record.storage_path)).id == record.id
    with pytest.raises(NotFound):
        await services.downloads.resolve_storage_path("missing.bin")
