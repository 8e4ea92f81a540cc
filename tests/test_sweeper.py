"""Tests for the reclamation sweeper."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest

from fleeting.errors import ContentGone
from fleeting.services.content_record import ContentKind, FileInfo
from fleeting.services.lifecycle import NewContent
from fleeting.services.sweeper import Sweeper


async def _file_record(engine, blobs, **overrides):
    handle = blobs.put(b"payload bytes", {"mime_type": "text/plain"})
    file = FileInfo(name="notes.txt", size=13, mime_type="text/plain", handle=handle)
    return await engine.create(NewContent(kind=ContentKind.FILE, file=file, **overrides))


class TestSweep:
    @pytest.mark.asyncio
    async def test_reclaims_expired_once(self, engine, sweeper, clock):
        record = await engine.create(NewContent(kind=ContentKind.TEXT, text="bye"))
        clock.advance(minutes=11)

        assert await sweeper.sweep() == 1
        stored = await engine.fetch_for_read(record.short_id)
        assert stored.deleted
        assert stored.deleted_at == clock.now

        assert await sweeper.sweep() == 0

    @pytest.mark.asyncio
    async def test_leaves_live_records(self, engine, sweeper, clock):
        record = await engine.create(NewContent(kind=ContentKind.TEXT, text="still here"))
        clock.advance(minutes=5)
        assert await sweeper.sweep() == 0
        assert not (await engine.fetch_for_read(record.short_id)).deleted

    @pytest.mark.asyncio
    async def test_releases_file_blob(self, engine, sweeper, blobs, clock):
        record = await _file_record(engine, blobs)
        path = blobs.path_for(record.file.handle)
        assert path.exists()

        clock.advance(minutes=11)
        assert await sweeper.sweep() == 1
        assert not path.exists()
        assert (await engine.fetch_for_read(record.short_id)).blob_released

    @pytest.mark.asyncio
    async def test_blob_failure_does_not_block_deletion(self, engine, sweeper, blobs, clock):
        record = await _file_record(engine, blobs)
        clock.advance(minutes=11)

        with patch.object(blobs, "delete", side_effect=OSError("disk on fire")):
            assert await sweeper.sweep() == 1

        stored = await engine.fetch_for_read(record.short_id)
        assert stored.deleted

    @pytest.mark.asyncio
    async def test_view_limited_file_kept_until_expiry(self, engine, sweeper, blobs, clock):
        record = await _file_record(engine, blobs, one_time_view=True)
        await engine.record_view(record.short_id)
        path = blobs.path_for(record.file.handle)

        assert await sweeper.sweep() == 0
        assert path.exists()

        clock.advance(minutes=11)
        assert await sweeper.sweep() == 0
        assert not path.exists()

    @pytest.mark.asyncio
    async def test_concurrent_sweeps_reclaim_once(self, engine, sweeper, blobs, clock):
        records = [await _file_record(engine, blobs) for _ in range(5)]
        clock.advance(minutes=11)

        with patch.object(blobs, "delete", wraps=blobs.delete) as delete:
            counts = await asyncio.gather(sweeper.sweep(), sweeper.sweep(), sweeper.sweep())
        assert sum(counts) == 5
        assert delete.call_count == 5
        for record in records:
            assert (await engine.fetch_for_read(record.short_id)).deleted

    @pytest.mark.asyncio
    async def test_sweep_races_views(self, engine, sweeper, clock):
        record = await engine.create(NewContent(kind=ContentKind.TEXT, text="x", max_views=10))
        await engine.record_view(record.short_id)
        clock.advance(minutes=11)

        results = await asyncio.gather(
            sweeper.sweep(),
            engine.record_view(record.short_id),
            return_exceptions=True,
        )
        assert isinstance(results[1], ContentGone)
        stored = await engine.fetch_for_read(record.short_id)
        assert stored.deleted
        assert stored.view_count == 1


class TestSchedule:
    @pytest.mark.asyncio
    async def test_scheduled_loop_runs_and_stops(self, engine, sweeper, clock):
        record = await engine.create(NewContent(kind=ContentKind.TEXT, text="tick"))
        clock.advance(minutes=11)

        sweeper.start()
        for _ in range(100):
            if (await engine.fetch_for_read(record.short_id)).deleted:
                break
            await asyncio.sleep(0.02)
        await sweeper.stop()

        assert (await engine.fetch_for_read(record.short_id)).deleted
        assert sweeper._task is None

    @pytest.mark.asyncio
    async def test_loop_survives_failed_sweep(self, sweeper):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return 0

        with patch.object(sweeper, "sweep", side_effect=flaky):
            sweeper.start()
            for _ in range(100):
                if calls >= 2:
                    break
                await asyncio.sleep(0.02)
            await sweeper.stop()
        assert calls >= 2

    @pytest.mark.asyncio
    async def test_stop_cancels_hung_sweep_after_grace(self, engine):
        sweeper = Sweeper(engine, interval=0.01, stop_grace=0.05)
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def hang():
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with patch.object(sweeper, "sweep", side_effect=hang):
            sweeper.start()
            await asyncio.wait_for(started.wait(), timeout=2)
            # Shutdown must not be tied to the sweep period
            sweeper.interval = 3600
            await asyncio.wait_for(sweeper.stop(), timeout=2)

        assert cancelled.is_set()
        assert sweeper._task is None

    @pytest.mark.asyncio
    async def test_stop_without_start(self, sweeper):
        await sweeper.stop()
