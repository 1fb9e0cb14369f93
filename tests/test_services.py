"""Record store, job submission, stale sweep and the Celery task wrapper."""
import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock, patch

import pytest

from app.models.video import ProcessingStatus
from app.processing.errors import RecordMissing
from app.processing.locks import LocalJobLocks
from app.processing.orchestrator import JobOutcome, VideoJob
from app.services.processing_service import submit_processing_job
from app.services.video_service import finish_video, get_video_by_id, update_video_fields
from app.workers import video_processing
from app.workers.maintenance import STALE_ERROR, sweep_stale_jobs


async def test_update_missing_record(session_maker):
    async with session_maker() as db:
        with pytest.raises(RecordMissing):
            await update_video_fields(db, uuid.uuid4(), duration=10)


async def test_update_is_partial(session_maker, make_video):
    video, _ = await make_video()
    async with session_maker() as db:
        await update_video_fields(db, video.id, duration=42, processing_status=ProcessingStatus.READY)
        await db.commit()
    async with session_maker() as db:
        record = await get_video_by_id(db, video.id)
    assert record.duration == 42
    assert record.processing_status == "ready"
    assert record.title == "Intro to fuzzing"


async def test_store_writes_variants_incrementally(store, make_video):
    video, _ = await make_video()
    variants = {"360p": "http://testserver/media/videos/x/360p.mp4"}
    await store.update(video.id, processed_variants=variants)
    variants["480p"] = "http://testserver/media/videos/x/480p.mp4"
    await store.update(video.id, processed_variants=variants)

    record = await store.get(video.id)
    assert set(record.processed_variants) == {"360p", "480p"}


async def test_store_rejects_fields_outside_processing(store, make_video):
    video, _ = await make_video()
    with pytest.raises(ValueError):
        await store.update(video.id, title="renamed")


async def test_terminal_write_only_from_unfinished(session_maker, store, make_video):
    video, _ = await make_video()

    assert await store.finish(video.id, ProcessingStatus.FAILED, processing_error="Processing timed out")
    assert not await store.finish(video.id, ProcessingStatus.READY, processing_error=None, processed_variants={"360p": "x"})

    record = await store.get(video.id)
    assert record.processing_status == "failed"
    assert record.processing_error == "Processing timed out"
    assert record.processed_variants == {}

    async with session_maker() as db:
        assert not await finish_video(db, uuid.uuid4(), ProcessingStatus.FAILED)


def test_submit_enqueues_task():
    video_id = uuid.uuid4()
    with patch.object(video_processing.process_video_upload, "delay") as delay:
        assert submit_processing_job(video_id, "/srv/uploads/x.mp4", True)
    delay.assert_called_once_with(video_id=str(video_id), source_path="/srv/uploads/x.mp4", use_remote_store=True)


def test_submit_survives_broker_outage():
    with patch.object(video_processing.process_video_upload, "delay", side_effect=ConnectionError("redis down")):
        assert submit_processing_job(uuid.uuid4(), "/srv/uploads/x.mp4", False) is False


def test_job_round_trips_through_task_args(tmp_path):
    job = VideoJob(uuid.uuid4(), tmp_path / "a.mp4", True)
    assert VideoJob.from_task_args(**job.to_task_args()) == job


def test_task_runs_job_and_reports_status(tmp_path):
    video_id = uuid.uuid4()
    outcome = JobOutcome(video_id=video_id, status=ProcessingStatus.READY)
    engine = Mock(dispose=AsyncMock())
    with patch.object(video_processing, "create_worker_engine", return_value=engine), \
            patch.object(video_processing, "process_video_job", AsyncMock(return_value=outcome)) as run:
        status = video_processing.process_video_upload(str(video_id), str(tmp_path / "a.mp4"), False)

    assert status == "ready"
    assert run.await_args.args[0] == VideoJob(video_id, tmp_path / "a.mp4", False)
    engine.dispose.assert_awaited_once()


def test_task_swallows_job_errors(tmp_path):
    video_id = uuid.uuid4()
    engine = Mock(dispose=AsyncMock())
    with patch.object(video_processing, "create_worker_engine", return_value=engine), \
            patch.object(video_processing, "process_video_job", AsyncMock(side_effect=RecordMissing(video_id))):
        assert video_processing.process_video_upload(str(video_id), str(tmp_path / "a.mp4")) is None
    engine.dispose.assert_awaited_once()


async def test_sweep_fails_only_stale_unlocked_records(session_maker, store, make_video):
    old = datetime.utcnow() - timedelta(hours=12)
    stale, stale_source = await make_video(updated_at=old)
    running, _ = await make_video(updated_at=old)
    fresh, _ = await make_video()
    finished, _ = await make_video(status=ProcessingStatus.READY, updated_at=old)
    locks = LocalJobLocks()

    async with locks.hold(running.id):
        failed = await sweep_stale_jobs(session_maker, locks, timedelta(hours=8))

    assert failed == [str(stale.id)]
    record = await store.get(stale.id)
    assert record.processing_status == "failed"
    assert record.processing_error == STALE_ERROR
    assert record.original_path is None
    assert not stale_source.exists()
    assert (await store.get(running.id)).processing_status == "processing"
    assert (await store.get(fresh.id)).processing_status == "processing"
    assert (await store.get(finished.id)).processing_status == "ready"


async def test_sweep_leaves_records_finished_by_their_job(session_maker, store, make_video):
    old = datetime.utcnow() - timedelta(hours=12)
    video, source = await make_video(updated_at=old)
    snapshot = await store.get(video.id)
    # The job finishes between the sweep's query and its write
    assert await store.finish(video.id, ProcessingStatus.READY, processing_error=None)

    with patch("app.workers.maintenance.list_stale_processing", AsyncMock(return_value=[snapshot])):
        failed = await sweep_stale_jobs(session_maker, LocalJobLocks(), timedelta(hours=8))

    assert failed == []
    assert (await store.get(video.id)).processing_status == "ready"
    assert source.exists()
