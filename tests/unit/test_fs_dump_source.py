from datetime import datetime, timezone
from pathlib import Path

import pytest

from persistence.fs_store import FsDumpSource
from schemas.internal.spotcheck import SpotCheckRefType
from spotcheck.errors import ParseError

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)

SITE = SpotCheckRefType.SENATE_SITE_BILLS


def _fragment(sequence: int, total: int, dump_datetime: str = "20240304T120000", **extra) -> dict:
    return {
        "year": 2024,
        "sequence": sequence,
        "total_fragments": total,
        "dump_datetime": dump_datetime,
        "records": [],
        **extra,
    }


def test_stage_fragment_writes_named_file(tmp_path: Path) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")

    fragment = source.stage_fragment(SITE, _fragment(1, 2))

    assert fragment.path == tmp_path / "staging" / "sensite" / "senate-site-bills" / "2024-20240304T120000-1.json"
    assert fragment.dump_datetime == T0
    assert source.read_fragment(fragment)["total_fragments"] == 2


def test_pending_dumps_group_fragments_newest_first(tmp_path: Path) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")
    source.stage_fragment(SITE, _fragment(2, 2, notes="weekly dump"))
    source.stage_fragment(SITE, _fragment(1, 2))
    source.stage_fragment(SITE, _fragment(1, 2, dump_datetime="20240301T000000"))

    newest, older = source.get_pending_dumps(SITE)

    assert newest.dump_datetime == T0
    assert newest.complete
    assert newest.notes == "weekly dump"
    assert [fragment.sequence for fragment in newest.fragments] == [1, 2]
    assert not older.complete
    assert source.get_pending_dumps(SpotCheckRefType.SENATE_SITE_CALENDAR) == []


def test_set_processed_moves_fragments_to_archive(tmp_path: Path) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")
    source.stage_fragment(SITE, _fragment(1, 1))
    (dump,) = source.get_pending_dumps(SITE)

    source.set_processed(dump)

    assert source.get_pending_dumps(SITE) == []
    assert (source.archive_dir(SITE) / "2024-20240304T120000-1.json").exists()


def test_invalid_fragment_header(tmp_path: Path) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")

    with pytest.raises(ParseError):
        source.stage_fragment(SITE, {"year": 2024, "sequence": 1})


def test_unreadable_fragment(tmp_path: Path) -> None:
    source = FsDumpSource(tmp_path / "staging", tmp_path / "archive")
    directory = source.staging_dir(SITE)
    directory.mkdir(parents=True)
    (directory / "2024-20240304T120000-1.json").write_text("[1, 2", encoding="utf-8")

    with pytest.raises(ParseError):
        source.get_pending_dumps(SITE)
