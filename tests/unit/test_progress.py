"""Unit tests for the JSON-lines progress store."""

import threading
from datetime import datetime
from pathlib import Path

import pytest

from scanbatch.adapters.progress import JsonlProgressStore
from scanbatch.domain.errors import StorageError
from scanbatch.domain.models import PageStatus, ProgressRecord, Stage, StageFailure


def record(page_id: str, status: PageStatus = PageStatus.DONE, **kwargs) -> ProgressRecord:
    return ProgressRecord(page_id, status, datetime(2024, 3, 1, 12, 0), **kwargs)


@pytest.fixture
def store(tmp_path: Path) -> JsonlProgressStore:
    return JsonlProgressStore(tmp_path / "logs" / "progress.jsonl")


def test_missing_file_loads_empty(store: JsonlProgressStore) -> None:
    assert store.load() == {}


def test_round_trip_with_failures(store: JsonlProgressStore) -> None:
    failure = StageFailure(Stage.OCR, "RecognizerRejected", "exit 1", 1, "boom")
    store.append(
        record("0002", PageStatus.FAILED, last_error=str(failure), failures=(failure,))
    )

    loaded = store.load()["0002"]

    assert loaded.status == PageStatus.FAILED
    assert loaded.failures == (failure,)
    assert loaded.timestamp == datetime(2024, 3, 1, 12, 0)


def test_last_record_wins(store: JsonlProgressStore) -> None:
    store.append(record("0001", PageStatus.FAILED))
    store.append(record("0001", PageStatus.DONE))
    assert store.load()["0001"].status == PageStatus.DONE


def test_truncated_line_skipped(store: JsonlProgressStore) -> None:
    store.append(record("0001"))
    store.append(record("0002"))
    with open(store.path, "a", encoding="utf-8") as f:
        f.write('{"page_id": "0003", "sta')

    loaded = store.load()

    assert sorted(loaded) == ["0001", "0002"]


def test_unknown_status_skipped(store: JsonlProgressStore) -> None:
    store.path.parent.mkdir(parents=True)
    store.path.write_text(
        '{"page_id": "0001", "status": "exploded", "timestamp": "2024-03-01T12:00:00"}\n'
    )
    assert store.load() == {}


def test_concurrent_appends(store: JsonlProgressStore) -> None:
    def worker(start: int) -> None:
        for i in range(start, start + 50):
            store.append(record(f"{i:04d}"))

    threads = [threading.Thread(target=worker, args=(n * 50,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.load()) == 200
    assert len(store.path.read_text().splitlines()) == 200


def test_unwritable_location(tmp_path: Path) -> None:
    blocker = tmp_path / "logs"
    blocker.write_text("a file, not a directory")
    store = JsonlProgressStore(blocker / "progress.jsonl")
    with pytest.raises(StorageError):
        store.append(record("0001"))
