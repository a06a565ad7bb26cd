"""Unit tests for the file-backed cache tier."""

import asyncio
import os
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import BaseModel

from faultcore.cache.file_store import (
    FileCacheService,
    default_cache_directory,
    resolve_cache_directory,
)
from faultcore.cache.keys import file_path_for_key
from faultcore.cache.models import FileCacheConfig
from faultcore.core.exceptions import ConfigurationError


class Fault(BaseModel):
    code: str
    count: int


class TestDirectoryResolution:
    """Tests for cache directory resolution."""

    def test_rooted_location_used_as_is(self, tmp_path):
        assert resolve_cache_directory(str(tmp_path)) == tmp_path

    def test_relative_location_under_temp(self):
        import tempfile

        resolved = resolve_cache_directory("faultcore-test")
        assert resolved == Path(tempfile.gettempdir()) / "faultcore-test"

    def test_unset_location_uses_app_data(self):
        assert resolve_cache_directory(None) == default_cache_directory()
        assert resolve_cache_directory("  ") == default_cache_directory()

    def test_default_directory_honors_xdg(self, tmp_path):
        with patch.dict(os.environ, {"XDG_DATA_HOME": str(tmp_path)}):
            if os.name != "nt":
                assert default_cache_directory() == tmp_path / "cache"

    def test_nul_in_location_raises(self):
        with pytest.raises(ConfigurationError):
            resolve_cache_directory("bad\x00dir")

    def test_construction_creates_directory(self, tmp_path):
        location = tmp_path / "nested" / "cache"
        service = FileCacheService(FileCacheConfig(cache_location=str(location)))
        assert location.is_dir()
        assert service.cache_directory == location

    def test_uncreatable_directory_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(ConfigurationError):
            FileCacheService(FileCacheConfig(cache_location=str(blocker / "cache")))


class TestFileCacheService:
    """Tests for get/set/remove on the file tier."""

    async def test_round_trip_model(self, file_cache):
        """Test a value written is read back equal."""
        fault = Fault(code="E42", count=3)
        await file_cache.create_entry("fault", fault)

        assert await file_cache.try_get("fault", Fault) == fault
        assert file_cache.stats.hits == 1

    async def test_round_trip_user_42(self, file_cache):
        """Test the colon key is stored under its hashed name."""
        await file_cache.create_entry("user:42", {"name": "x"})

        path = file_path_for_key("user:42", file_cache.cache_directory)
        assert path.exists()
        assert ":" not in path.name
        assert await file_cache.try_get("user:42", dict) == {"name": "x"}

    async def test_miss_on_absent_key(self, file_cache):
        assert await file_cache.try_get("absent", dict) is None
        assert file_cache.stats.misses == 1

    async def test_empty_key(self, file_cache):
        """Test empty keys are a miss on read and a no-op on write."""
        await file_cache.create_entry("", {"a": 1})
        assert await file_cache.try_get("") is None
        assert list(file_cache.cache_directory.iterdir()) == []

    async def test_none_value_not_written(self, file_cache):
        await file_cache.create_entry("k", None)
        assert not file_path_for_key("k", file_cache.cache_directory).exists()

    async def test_empty_file_is_miss(self, file_cache):
        file_path_for_key("k", file_cache.cache_directory).write_text("")
        assert await file_cache.try_get("k", dict) is None

    async def test_overwrite(self, file_cache):
        await file_cache.create_entry("k", [1, 2, 3])
        await file_cache.create_entry("k", [4])
        assert await file_cache.try_get("k", list[int]) == [4]

    async def test_remove_is_idempotent(self, file_cache):
        """Test remove deletes the entry and tolerates repeats."""
        await file_cache.create_entry("k", "v")
        await file_cache.remove("k")
        await file_cache.remove("k")

        assert await file_cache.try_get("k", str) is None
        assert file_cache.entry_count() == 0

    async def test_remove_unknown_key(self, file_cache):
        await file_cache.remove("never-cached")

    async def test_repairable_file_is_read(self, file_cache):
        """Test a file with trailing commas is repaired on read."""
        path = file_path_for_key("k", file_cache.cache_directory)
        path.write_text('{"code": "E1",\n "count": 2,\n}')

        assert await file_cache.try_get("k", Fault) == Fault(code="E1", count=2)
        assert path.exists()

    async def test_corrupt_file_self_heals(self, file_cache):
        """Test an unparseable file is deleted and reported as a miss."""
        await file_cache.create_entry("k", {"a": 1})
        path = file_path_for_key("k", file_cache.cache_directory)
        path.write_text("{not json at all")

        assert await file_cache.try_get("k", dict) is None
        assert not path.exists()
        assert str(path) not in file_cache.index

    async def test_non_utf8_file_self_heals(self, file_cache):
        """Test a file that is not valid UTF-8 is deleted and reported as a miss."""
        path = file_path_for_key("k", file_cache.cache_directory)
        path.write_bytes(b'{"a": "\xff\xfe"}')

        assert await file_cache.try_get("k", dict) is None
        assert not path.exists()
        assert file_cache.stats.errors == 0
        assert file_cache.stats.misses == 1

    async def test_corrupt_delete_keeps_concurrent_write(self, file_cache):
        """Test a write queued behind a corrupt read is not deleted."""
        path = file_path_for_key("k", file_cache.cache_directory)
        path.write_text("{not json at all")

        stale, _ = await asyncio.gather(
            file_cache.try_get("k", dict),
            file_cache.create_entry("k", {"a": 1}),
        )

        assert stale is None
        assert await file_cache.try_get("k", dict) == {"a": 1}

    async def test_type_mismatch_self_heals(self, file_cache):
        await file_cache.create_entry("k", "plain text")
        assert await file_cache.try_get("k", Fault) is None
        assert not file_path_for_key("k", file_cache.cache_directory).exists()

    async def test_write_failure_is_swallowed(self, file_cache):
        """Test write errors are logged, never raised."""
        with patch("faultcore.cache.file_store.aiofiles.open", side_effect=OSError("disk full")):
            await file_cache.create_entry("k", "v")
        assert file_cache.stats.errors == 1

    async def test_read_failure_is_miss(self, file_cache):
        await file_cache.create_entry("k", "v")
        with patch("faultcore.cache.file_store.aiofiles.open", side_effect=OSError("io")):
            assert await file_cache.try_get("k", str) is None
        assert file_cache.stats.errors == 1

    async def test_index_records_expiration(self, file_cache):
        await file_cache.create_entry("k", "v", absolute_expiration=timedelta(minutes=5))
        entry = file_cache.index[str(file_path_for_key("k", file_cache.cache_directory))]
        assert entry.absolute_expiration == timedelta(minutes=5)

    async def test_default_expiration_from_config(self, tmp_path):
        config = FileCacheConfig(cache_location=str(tmp_path), default_expiration=30)
        service = FileCacheService(config)
        await service.create_entry("k", "v")

        entry = service.index[str(tmp_path / "k.cache")]
        assert entry.absolute_expiration == timedelta(seconds=30)

    async def test_concurrent_writes_and_reads(self, file_cache):
        """Test parallel operations on one key leave a readable value."""
        await asyncio.gather(
            *(file_cache.create_entry("shared", {"n": i}) for i in range(20)),
            *(file_cache.try_get("shared", dict) for _ in range(20)),
        )
        value = await file_cache.try_get("shared", dict)
        assert value is not None
        assert 0 <= value["n"] < 20


class TestDisabledFileCache:
    """Tests for the disabled short-circuit."""

    async def test_disabled_is_noop(self, tmp_path):
        location = tmp_path / "cache"
        service = FileCacheService(
            FileCacheConfig(enabled=False, cache_location=str(location))
        )

        await service.create_entry("k", "v")
        assert await service.try_get("k", str) is None
        await service.remove("k")
        await service.start()

        assert not location.exists()
        assert service.stats.hits == service.stats.misses == 0


class TestSweep:
    """Tests for expiration sweeps."""

    async def test_sweep_removes_expired_entries(self, file_cache):
        await file_cache.create_entry("old", "v", absolute_expiration=timedelta(seconds=1))
        await file_cache.create_entry("new", "v", absolute_expiration=timedelta(hours=1))

        removed = await file_cache.sweep_expired(datetime.now(UTC) + timedelta(seconds=2))

        assert removed == 1
        assert await file_cache.try_get("old", str) is None
        assert await file_cache.try_get("new", str) == "v"
        assert file_cache.entry_count() == 1

    async def test_zero_expiration_is_swept(self, file_cache):
        """Test an entry written already due is removed by the next sweep."""
        await file_cache.create_entry("due", "v", absolute_expiration=timedelta(0))
        path = file_path_for_key("due", file_cache.cache_directory)

        removed = await file_cache.sweep_expired(datetime.now(UTC) + timedelta(seconds=1))

        assert removed == 1
        assert not path.exists()

    async def test_sweep_continues_after_delete_failure(self, file_cache):
        await file_cache.create_entry("a", "v", absolute_expiration=timedelta(seconds=1))
        await file_cache.create_entry("b", "v", absolute_expiration=timedelta(seconds=1))
        later = datetime.now(UTC) + timedelta(seconds=2)

        original_unlink = Path.unlink

        def flaky_unlink(self, missing_ok=False):
            if self.name == "a.cache":
                raise PermissionError("locked")
            return original_unlink(self, missing_ok=missing_ok)

        with patch.object(Path, "unlink", flaky_unlink):
            removed = await file_cache.sweep_expired(later)

        assert removed == 1
        assert file_cache.entry_count() == 1
        assert await file_cache.sweep_expired(later) == 1

    async def test_background_sweep_runs(self, tmp_path):
        """Test the started service sweeps on its interval."""
        config = FileCacheConfig(cache_location=str(tmp_path), sweep_interval=0.05)
        service = FileCacheService(config)
        await service.create_entry("k", "v", absolute_expiration=timedelta(milliseconds=10))

        async with service:
            await asyncio.sleep(0.3)

        assert not (tmp_path / "k.cache").exists()
        assert service.entry_count() == 0

    async def test_start_is_idempotent(self, file_cache):
        await file_cache.start()
        task = file_cache._sweep_task
        await file_cache.start()
        assert file_cache._sweep_task is task

    async def test_close_stops_sweep(self, file_cache):
        await file_cache.start()
        task = file_cache._sweep_task
        await file_cache.close()
        assert task.done()
        assert file_cache._sweep_task is None

    async def test_external_stop_event(self, tmp_path):
        stop = asyncio.Event()
        service = FileCacheService(
            FileCacheConfig(cache_location=str(tmp_path), sweep_interval=10),
            stop_event=stop,
        )
        await service.start()
        task = service._sweep_task

        stop.set()
        await asyncio.wait_for(task, timeout=1)
        assert task.done()


class TestStartupScan:
    """Tests for seeding the index from existing files."""

    def test_existing_files_indexed(self, tmp_path):
        (tmp_path / "a.cache").write_text('"x"')
        (tmp_path / "notes.txt").write_text("ignored")

        service = FileCacheService(FileCacheConfig(cache_location=str(tmp_path)))

        assert service.entry_count() == 1
        assert str(tmp_path / "a.cache") in service.index

    async def test_mtime_seeds_expiration(self, tmp_path):
        """Test stale files keep their age across restarts."""
        path = tmp_path / "old.cache"
        path.write_text('"x"')
        two_days_ago = time.time() - 2 * 86400
        os.utime(path, (two_days_ago, two_days_ago))

        service = FileCacheService(FileCacheConfig(cache_location=str(tmp_path)))

        assert await service.sweep_expired() == 1
        assert not path.exists()

    async def test_scan_time_seeding(self, tmp_path):
        path = tmp_path / "old.cache"
        path.write_text('"x"')
        two_days_ago = time.time() - 2 * 86400
        os.utime(path, (two_days_ago, two_days_ago))

        service = FileCacheService(
            FileCacheConfig(cache_location=str(tmp_path), seed_expiration_from_mtime=False)
        )

        assert await service.sweep_expired() == 0
        assert path.exists()


class TestClear:
    """Tests for clear()."""

    async def test_clear_deletes_everything(self, file_cache):
        for i in range(3):
            await file_cache.create_entry(f"k{i}", i)

        assert await file_cache.clear() == 3
        assert file_cache.entry_count() == 0
        assert list(file_cache.cache_directory.glob("*.cache")) == []
