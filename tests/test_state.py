from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from spacetimectl.exceptions import StateError
from spacetimectl.models import CliResult, PublishOutcome, PublishRequest
from spacetimectl.state import PublishCache
from spacetimectl.time_convert import (
    from_microseconds_timestamp,
    microseconds_timestamp,
    to_microseconds_timestamp,
)


def _outcome(is_success: bool = True) -> PublishOutcome:
    return PublishOutcome(
        request=PublishRequest("chat", "/work/server"),
        result=CliResult(),
        is_success=is_success,
        uploaded_host="http://127.0.0.1:3000",
        database_address="93dda09db9a56d8fa6c024d843e805d8",
        published_at=datetime(2024, 5, 1, 12, 0, 0, 250, tzinfo=timezone.utc),
        is_optimized=True,
    )


def test_microsecond_timestamps():
    moment = datetime(2024, 5, 1, 12, 0, 0, 250, tzinfo=timezone.utc)

    micros = to_microseconds_timestamp(moment)

    assert micros == 1714564800000250
    assert from_microseconds_timestamp(micros) == moment
    assert from_microseconds_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert microseconds_timestamp() > micros


def test_save_then_load(tmp_path: Path):
    cache = PublishCache(tmp_path / "nested" / "state.yml")

    cache.save(_outcome())
    loaded = cache.load()

    assert loaded.module_name == "chat"
    assert loaded.project_path == "/work/server"
    assert loaded.database_address == "93dda09db9a56d8fa6c024d843e805d8"
    assert loaded.published_at == datetime(2024, 5, 1, 12, 0, 0, 250, tzinfo=timezone.utc)
    assert loaded.is_optimized


def test_load_without_file_is_none(tmp_path: Path):
    assert PublishCache(tmp_path / "state.yml").load() is None


def test_failed_publish_is_not_cached(tmp_path: Path):
    cache = PublishCache(tmp_path / "state.yml")

    with pytest.raises(StateError):
        cache.save(_outcome(is_success=False))
    assert not cache.path.exists()


def test_invalid_cache_raises(tmp_path: Path):
    path = tmp_path / "state.yml"
    path.write_text("last_publish: [1, 2]\n")

    with pytest.raises(StateError):
        PublishCache(path).load()


def test_clear_removes_file(tmp_path: Path):
    cache = PublishCache(tmp_path / "state.yml")
    cache.save(_outcome())

    cache.clear()

    assert cache.load() is None
