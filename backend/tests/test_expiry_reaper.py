import uuid
from pathlib import Path

from filedrop.clock import MS_PER_DAY
from filedrop.models.file_record import FileRecord
from filedrop.schemas.setting import AppSettings
from filedrop.services.expiry_reaper import ReaperState


def expired_record(clock, **overrides) -> FileRecord:
    values = dict(
        id=uuid.uuid4(),
        name="old.txt",
        size=3,
        type="text/plain",
        hash=uuid.uuid4().hex * 2,
        upload_date=clock.now - MS_PER_DAY,
        code="EXP234",
        data="/uploadfiles/EXP234_1.txt",
        storage_type="localFile",
        storage_path="EXP234_1.txt",
        download_count=0,
        expire_date=clock.now - 1,
    )
    values.update(overrides)
    return FileRecord(**values)


async def test_reaper_removes_expired_record_and_bytes(services, config, clock, byte_stream):
    settings = AppSettings.model_validate({"defaultExpireDays": 1})
    doomed = (await services.uploads.upload(byte_stream(b"old"), "old.txt", None, settings)).record
    keeper = (await services.uploads.upload(byte_stream(b"keep"), "keep.txt", None, AppSettings())).record
    clock.advance(MS_PER_DAY + 1)

    report = await services.reaper.run_once()

    assert report.deleted == [str(doomed.id)]
    assert report.failed == []
    assert await services.store.get_by_id(doomed.id) is None
    assert not (Path(config.FILE_STORAGE_PATH) / doomed.storage_path).exists()
    assert await services.store.get_by_id(keeper.id) is not None
    assert services.reaper.state == ReaperState.IDLE


async def test_reaper_tolerates_missing_bytes(services, clock):
    record = await services.store.insert(expired_record(clock))

    report = await services.reaper.run_once()

    assert report.deleted == [str(record.id)]
    assert await services.store.count() == 0


async def test_one_bad_record_does_not_stop_the_sweep(services, clock):
    bad = await services.store.insert(expired_record(clock, code="BAD234", storage_path="../outside.txt"))
    good = await services.store.insert(expired_record(clock, code="YES234", storage_path="YES234_1.txt"))

    report = await services.reaper.run_once()

    assert report.failed == [str(bad.id)]
    assert report.deleted == [str(good.id)]
    # The failed record is kept for the next pass
    assert await services.store.get_by_id(bad.id) is not None


async def test_nothing_to_do(services):
    report = await services.reaper.run_once()
    assert report.deleted == [] and report.failed == []


async def test_start_and_stop(services):
    reaper = services.reaper
    reaper.start()
    assert reaper.running
    await reaper.stop()
    assert not reaper.running
