from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from persistence.reference_store import ReferenceStore, scrape_file_name
from schemas.internal.keys import BaseBillId
from spotcheck.errors import QueueEmpty

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


def _store(tmp_path: Path) -> ReferenceStore:
    return ReferenceStore(
        tmp_path / "spotcheck.sqlite",
        staging_dir=tmp_path / "staging",
        archive_dir=tmp_path / "archive",
        clock=_Clock(),
    )


def test_scrape_file_name_format() -> None:
    key = BaseBillId.parse("S100-2023")
    assert scrape_file_name(key, T0) == "2023-S100-20240304T120000.html"


def test_save_list_and_archive(tmp_path: Path) -> None:
    store = _store(tmp_path)
    key = BaseBillId.parse("S100-2023")

    saved = store.save_content(key, b"<html></html>", scraped_at=T0)

    assert saved.file_path.read_bytes() == b"<html></html>"
    assert [item.file_name for item in store.list_incoming()] == [saved.file_name]

    archived = store.archive(saved)

    assert archived.archived
    assert not archived.pending_processing
    assert archived.file_path == tmp_path / "archive" / saved.file_name
    assert archived.file_path.exists()
    assert not saved.file_path.exists()
    assert store.list_incoming() == []
    assert store.get_file(saved.file_name) == archived


def test_incoming_is_ordered_by_staged_time(tmp_path: Path) -> None:
    store = _store(tmp_path)
    later = store.save_content(BaseBillId.parse("S1-2023"), b"a", scraped_at=T0 + timedelta(hours=1))
    earlier = store.save_content(BaseBillId.parse("S2-2023"), b"b", scraped_at=T0)

    assert [item.file_name for item in store.list_incoming()] == [
        earlier.file_name,
        later.file_name,
    ]


def test_queue_orders_by_priority_then_age(tmp_path: Path) -> None:
    store = _store(tmp_path)
    s1, s2, s3 = (BaseBillId.parse(text) for text in ("S1-2023", "S2-2023", "S3-2023"))
    store.enqueue(s1, 0)
    store.enqueue(s2, 5)
    store.enqueue(s3, 5)

    assert store.dequeue_head().key == s2
    page = store.list_queue()
    assert [entry.key for entry in page.items] == [s2, s3, s1]
    assert page.total == 3

    store.remove(s2)
    assert store.dequeue_head().key == s3


def test_enqueue_twice_updates_priority(tmp_path: Path) -> None:
    store = _store(tmp_path)
    key = BaseBillId.parse("S100-2023")
    store.enqueue(key, 1)
    store.enqueue(key, 9)

    page = store.list_queue()
    assert page.total == 1
    assert page.items[0].priority == 9


def test_remove_only_matching_enqueue(tmp_path: Path) -> None:
    store = _store(tmp_path)
    key = BaseBillId.parse("S100-2023")
    first = store.enqueue(key, 1)
    store.enqueue(key, 1)

    assert store.remove(key, first.added_datetime) is False
    assert store.list_queue().total == 1
    assert store.remove(key) is True
    assert store.list_queue().total == 0


def test_empty_queue_raises(tmp_path: Path) -> None:
    with pytest.raises(QueueEmpty):
        _store(tmp_path).dequeue_head()


def test_list_queue_pagination_and_order(tmp_path: Path) -> None:
    store = _store(tmp_path)
    for priority in range(5):
        store.enqueue(BaseBillId(print_no=f"S{priority + 1}", session=2023), priority)

    page = store.list_queue(limit=2, offset=1, order="ASC")

    assert [entry.priority for entry in page.items] == [1, 2]
    assert page.total == 5
    with pytest.raises(ValueError):
        store.list_queue(order="sideways")


def test_dead_letter_moves_entry_out_of_queue(tmp_path: Path) -> None:
    store = _store(tmp_path)
    key = BaseBillId.parse("S100-2023")
    store.enqueue(key, 3)

    entry = store.dead_letter(key, attempts=5, error="LRS down")

    assert entry.priority == 3
    assert store.list_queue().total == 0
    (stored,) = store.list_dead_letters()
    assert stored.key == key
    assert stored.attempts == 5
    assert stored.error == "LRS down"
