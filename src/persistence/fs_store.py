"""Filesystem source for senate website dumps.

Each dump arrives as numbered JSON fragments under
``<staging>/sensite/<ref-name>/<year>-<dumpTime>-<seq>.json``. A dump is
complete once every fragment announced by ``total_fragments`` has landed.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from persistence.reference_store import SCRAPE_TIME_FORMAT
from schemas.internal.references import DumpFragment, SenateSiteDump
from schemas.internal.spotcheck import SpotCheckRefType
from spotcheck.errors import ParseError

logger = logging.getLogger(__name__)

_FRAGMENT_NAME = re.compile(r"^(\d{4})-(\d{8}T\d{6})-(\d+)\.json$")


class FsDumpSource:
    def __init__(self, staging_dir: str | Path, archive_dir: str | Path) -> None:
        self._staging_dir = Path(staging_dir) / "sensite"
        self._archive_dir = Path(archive_dir) / "sensite"

    @classmethod
    def from_settings(cls, settings) -> "FsDumpSource":
        return cls(settings.scraped_staging_dir, settings.archive_dir)

    def staging_dir(self, ref_type: SpotCheckRefType) -> Path:
        return self._staging_dir / ref_type.ref_name

    def archive_dir(self, ref_type: SpotCheckRefType) -> Path:
        return self._archive_dir / ref_type.ref_name

    def stage_fragment(self, ref_type: SpotCheckRefType, payload: dict[str, Any]) -> DumpFragment:
        """Write an incoming fragment into the staging area."""
        try:
            year = int(payload["year"])
            sequence = int(payload["sequence"])
            total = int(payload["total_fragments"])
            dump_datetime = _parse_datetime(payload["dump_datetime"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ParseError(f"Invalid dump fragment header: {exc}") from exc
        directory = self.staging_dir(ref_type)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{year}-{dump_datetime.strftime(SCRAPE_TIME_FORMAT)}-{sequence}.json"
        partial = path.with_name(path.name + ".part")
        partial.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        partial.replace(path)
        logger.info("Staged %s fragment %d/%d at %s", ref_type.ref_name, sequence, total, path)
        return DumpFragment(
            ref_type=ref_type,
            year=year,
            dump_datetime=dump_datetime,
            sequence=sequence,
            total_fragments=total,
            path=path,
        )

    def get_pending_dumps(self, ref_type: SpotCheckRefType) -> list[SenateSiteDump]:
        """Staged dumps for the reference type, newest first, complete or not."""
        directory = self.staging_dir(ref_type)
        if not directory.exists():
            return []
        grouped: dict[tuple[int, datetime], list[DumpFragment]] = defaultdict(list)
        notes: dict[tuple[int, datetime], str | None] = {}
        for path in sorted(directory.glob("*.json")):
            match = _FRAGMENT_NAME.match(path.name)
            if not match:
                logger.warning("Skipping unrecognized dump file %s", path)
                continue
            header = self.read_fragment(path)
            year = int(match.group(1))
            dump_datetime = datetime.strptime(match.group(2), SCRAPE_TIME_FORMAT).replace(
                tzinfo=timezone.utc
            )
            fragment = DumpFragment(
                ref_type=ref_type,
                year=year,
                dump_datetime=dump_datetime,
                sequence=int(match.group(3)),
                total_fragments=int(header.get("total_fragments", 1)),
                path=path,
            )
            grouped[(year, dump_datetime)].append(fragment)
            if header.get("notes"):
                notes[(year, dump_datetime)] = header["notes"]
        dumps = [
            SenateSiteDump(
                ref_type=ref_type,
                year=year,
                dump_datetime=dump_datetime,
                total_fragments=max(fragment.total_fragments for fragment in fragments),
                fragments=sorted(fragments, key=lambda fragment: fragment.sequence),
                notes=notes.get((year, dump_datetime)),
            )
            for (year, dump_datetime), fragments in grouped.items()
        ]
        return sorted(dumps, key=lambda dump: dump.dump_datetime, reverse=True)

    def read_fragment(self, fragment: DumpFragment | Path) -> dict[str, Any]:
        path = fragment.path if isinstance(fragment, DumpFragment) else Path(fragment)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ParseError(f"Unreadable dump fragment {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ParseError(f"Dump fragment {path} must contain a JSON object")
        return data

    def set_processed(self, dump: SenateSiteDump) -> None:
        target_dir = self.archive_dir(dump.ref_type)
        target_dir.mkdir(parents=True, exist_ok=True)
        for fragment in dump.fragments:
            if not fragment.path.exists():
                continue
            destination = target_dir / fragment.path.name
            if destination.exists():
                destination.unlink()
            shutil.move(str(fragment.path), str(destination))
        logger.info(
            "Archived %s dump %s (%d fragments)",
            dump.ref_type.ref_name,
            dump.dump_datetime.isoformat(),
            len(dump.fragments),
        )


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        try:
            parsed = datetime.strptime(text, SCRAPE_TIME_FORMAT)
        except ValueError:
            parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = ["FsDumpSource"]
