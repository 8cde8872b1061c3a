"""SQLite report repository: reports, observations and denormalized mismatches."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import defaultdict
from datetime import datetime
from typing import Any, Iterable

from persistence.models import (
    MismatchIdentity,
    MismatchRecord,
    PaginatedList,
    ReportSummaryRecord,
)
from persistence.sqlite_store import SqliteStore, from_iso, to_iso
from schemas.internal.keys import key_from_json
from schemas.internal.spotcheck import (
    Key,
    MismatchState,
    MismatchStatus,
    Observation,
    ReferenceId,
    Report,
    ReportId,
    SpotCheckDataSource,
    SpotCheckMismatch,
    SpotCheckMismatchIgnore,
    SpotCheckMismatchType,
    SpotCheckRefType,
)
from schemas.requests import MismatchOrderBy, OpenMismatchQuery, ReportSummaryQuery
from spotcheck.errors import MismatchNotFound, ReportNotFound

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS spotcheck_report (
    report_pk INTEGER PRIMARY KEY AUTOINCREMENT,
    reference_type TEXT NOT NULL,
    reference_datetime TEXT NOT NULL,
    report_datetime TEXT NOT NULL,
    notes TEXT,
    UNIQUE(reference_type, reference_datetime, report_datetime)
);
CREATE INDEX IF NOT EXISTS idx_spotcheck_report_run
    ON spotcheck_report(reference_type, report_datetime);

CREATE TABLE IF NOT EXISTS spotcheck_checked_key (
    report_pk INTEGER NOT NULL,
    key_kind TEXT NOT NULL,
    key_json TEXT NOT NULL,
    PRIMARY KEY(report_pk, key_kind, key_json),
    FOREIGN KEY(report_pk) REFERENCES spotcheck_report(report_pk) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS spotcheck_observation (
    report_pk INTEGER NOT NULL,
    key_kind TEXT NOT NULL,
    key_json TEXT NOT NULL,
    observed_datetime TEXT NOT NULL,
    PRIMARY KEY(report_pk, key_kind, key_json),
    FOREIGN KEY(report_pk) REFERENCES spotcheck_report(report_pk) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS spotcheck_mismatch (
    mismatch_id INTEGER PRIMARY KEY AUTOINCREMENT,
    report_pk INTEGER NOT NULL,
    reference_type TEXT NOT NULL,
    reference_datetime TEXT NOT NULL,
    data_source TEXT NOT NULL,
    content_type TEXT NOT NULL,
    key_kind TEXT NOT NULL,
    key_json TEXT NOT NULL,
    mismatch_type TEXT NOT NULL,
    state TEXT NOT NULL,
    ignore_status TEXT NOT NULL,
    issue_ids_json TEXT NOT NULL DEFAULT '[]',
    first_seen_datetime TEXT NOT NULL,
    observed_datetime TEXT NOT NULL,
    report_datetime TEXT NOT NULL,
    observed_data TEXT NOT NULL DEFAULT '',
    reference_data TEXT NOT NULL DEFAULT '',
    FOREIGN KEY(report_pk) REFERENCES spotcheck_report(report_pk) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_spotcheck_mismatch_identity
    ON spotcheck_mismatch(data_source, reference_type, key_kind, key_json, mismatch_type, report_datetime);
CREATE INDEX IF NOT EXISTS idx_spotcheck_mismatch_report ON spotcheck_mismatch(report_pk);
"""

_CURRENT_MISMATCHES = """
WITH ranked AS (
    SELECT m.*,
           ROW_NUMBER() OVER (
               PARTITION BY m.reference_type, m.key_kind, m.key_json, m.mismatch_type
               ORDER BY m.report_datetime DESC, m.mismatch_id DESC
           ) AS rn
      FROM spotcheck_mismatch m
     WHERE {scope}
),
latest AS (
    SELECT c.*,
           r.reference_datetime AS report_reference_datetime,
           r.reference_type AS report_reference_type
      FROM ranked c
      JOIN spotcheck_report r ON r.report_pk = c.report_pk
     WHERE c.rn = 1
)
"""

_ORDER_COLUMNS = {
    MismatchOrderBy.OBSERVED_DATETIME: "observed_datetime",
    MismatchOrderBy.FIRST_SEEN_DATETIME: "first_seen_datetime",
    MismatchOrderBy.REFERENCE_DATETIME: "reference_datetime",
    MismatchOrderBy.REPORT_DATETIME: "report_datetime",
    MismatchOrderBy.MISMATCH_TYPE: "mismatch_type",
    MismatchOrderBy.CONTENT_KEY: "key_json",
}

_IN_CHUNK = 400


class SqliteReportStore(SqliteStore):
    """Report repository backed by SQLite.

    A mismatch's current state is the newest record for its lifecycle
    identity ``(reference_type, key, mismatch_type)``.
    """

    _schema = _SCHEMA

    # Writes

    def save_report(self, report: Report, records: Iterable[MismatchRecord]) -> None:
        """Persist the report and its derived records in one transaction.

        Saving a report id that already exists replaces the earlier save.
        """
        records = list(records)
        report_id = report.report_id
        with self._transaction() as conn:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                """
                DELETE FROM spotcheck_report
                 WHERE reference_type = ? AND reference_datetime = ? AND report_datetime = ?
                """,
                _report_id_params(report_id),
            )
            cur = conn.execute(
                """
                INSERT INTO spotcheck_report (
                    reference_type, reference_datetime, report_datetime, notes
                ) VALUES (?, ?, ?, ?)
                """,
                (*_report_id_params(report_id), report.notes),
            )
            report_pk = cur.lastrowid
            conn.executemany(
                "INSERT INTO spotcheck_checked_key (report_pk, key_kind, key_json) VALUES (?, ?, ?)",
                [(report_pk, key.kind, key.to_json()) for key in report.checked_keys],
            )
            conn.executemany(
                """
                INSERT INTO spotcheck_observation (report_pk, key_kind, key_json, observed_datetime)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (report_pk, key.kind, key.to_json(), to_iso(observation.observed_datetime))
                    for key, observation in report.observations.items()
                ],
            )
            conn.executemany(
                """
                INSERT INTO spotcheck_mismatch (
                    report_pk, reference_type, reference_datetime, data_source, content_type,
                    key_kind, key_json, mismatch_type, state, ignore_status, issue_ids_json,
                    first_seen_datetime, observed_datetime, report_datetime,
                    observed_data, reference_data
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [_record_params(report_pk, record) for record in records],
            )
        logger.info(
            "Saved report %s with %d observations and %d mismatch records",
            report_id,
            len(report.observations),
            len(records),
        )

    def delete_report(self, report_id: ReportId) -> None:
        with self._transaction() as conn:
            cur = conn.execute(
                """
                DELETE FROM spotcheck_report
                 WHERE reference_type = ? AND reference_datetime = ? AND report_datetime = ?
                """,
                _report_id_params(report_id),
            )
            if cur.rowcount == 0:
                raise ReportNotFound(report_id)

    def clear(self) -> None:
        """Administrative wipe of every stored report and mismatch."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM spotcheck_mismatch")
            conn.execute("DELETE FROM spotcheck_observation")
            conn.execute("DELETE FROM spotcheck_checked_key")
            conn.execute("DELETE FROM spotcheck_report")

    def set_ignore_status(self, mismatch_id: int, status: SpotCheckMismatchIgnore) -> None:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE spotcheck_mismatch SET ignore_status = ? WHERE mismatch_id = ?",
                (SpotCheckMismatchIgnore(status).value, mismatch_id),
            )
            if cur.rowcount == 0:
                raise MismatchNotFound(mismatch_id)

    def add_issue_id(self, mismatch_id: int, issue_id: str) -> None:
        def _add(issue_ids: list[str]) -> list[str]:
            return issue_ids if issue_id in issue_ids else [*issue_ids, issue_id]

        self._update_issue_ids(mismatch_id, _add)

    def remove_issue_id(self, mismatch_id: int, issue_id: str) -> None:
        self._update_issue_ids(
            mismatch_id, lambda issue_ids: [item for item in issue_ids if item != issue_id]
        )

    def _update_issue_ids(self, mismatch_id: int, update) -> None:
        with self._transaction() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT issue_ids_json FROM spotcheck_mismatch WHERE mismatch_id = ?",
                (mismatch_id,),
            ).fetchone()
            if row is None:
                raise MismatchNotFound(mismatch_id)
            issue_ids = update(json.loads(row["issue_ids_json"] or "[]"))
            conn.execute(
                "UPDATE spotcheck_mismatch SET issue_ids_json = ? WHERE mismatch_id = ?",
                (json.dumps(issue_ids), mismatch_id),
            )

    # Reads

    def get_report(self, report_id: ReportId) -> Report:
        row = self._fetch_one(
            """
            SELECT * FROM spotcheck_report
             WHERE reference_type = ? AND reference_datetime = ? AND report_datetime = ?
            """,
            _report_id_params(report_id),
        )
        if row is None:
            raise ReportNotFound(report_id)
        return self._load_report(row)

    def get_report_by_run(self, ref_type: SpotCheckRefType, run_datetime: datetime) -> Report:
        row = self._fetch_one(
            """
            SELECT * FROM spotcheck_report
             WHERE reference_type = ? AND report_datetime = ?
             ORDER BY reference_datetime DESC
             LIMIT 1
            """,
            (ref_type.value, to_iso(run_datetime)),
        )
        if row is None:
            raise ReportNotFound(f"{ref_type.value}@{to_iso(run_datetime)}")
        return self._load_report(row)

    def list_report_summaries(self, query: ReportSummaryQuery) -> PaginatedList:
        clauses = ["report_datetime >= ?", "report_datetime <= ?"]
        params: list[object] = [to_iso(query.start), to_iso(query.end)]
        if query.reference_type is not None:
            clauses.append("reference_type = ?")
            params.append(query.reference_type.value)
        where = " AND ".join(clauses)
        total_row = self._fetch_one(
            f"SELECT COUNT(*) AS total FROM spotcheck_report WHERE {where}", tuple(params)
        )
        direction = "ASC" if query.order == "ASC" else "DESC"
        rows = self._fetch_all(
            f"""
            SELECT r.*,
                   (SELECT COUNT(*) FROM spotcheck_checked_key k WHERE k.report_pk = r.report_pk)
                       AS checked_key_count,
                   (SELECT COUNT(*) FROM spotcheck_observation o WHERE o.report_pk = r.report_pk)
                       AS observation_count
              FROM spotcheck_report r
             WHERE {where}
             ORDER BY r.report_datetime {direction}, r.report_pk {direction}
             LIMIT ? OFFSET ?
            """,
            (*params, query.limit if query.limit is not None else -1, query.offset),
        )
        counts = self._summary_counts([row["report_pk"] for row in rows])
        items = [
            ReportSummaryRecord(
                report_id=_row_to_report_id(row),
                notes=row["notes"],
                checked_key_count=row["checked_key_count"],
                observation_count=row["observation_count"],
                **counts.get(row["report_pk"], _empty_counts()),
            )
            for row in rows
        ]
        return PaginatedList(
            items=items,
            total=int(total_row["total"]) if total_row else 0,
            limit=query.limit,
            offset=query.offset,
        )

    def get_current_mismatches(self, data_source: SpotCheckDataSource) -> list[MismatchRecord]:
        rows = self._fetch_all(
            _CURRENT_MISMATCHES.format(scope="m.data_source = ?")
            + "SELECT * FROM latest ORDER BY mismatch_id",
            (SpotCheckDataSource(data_source).value,),
        )
        return [_row_to_record(row) for row in rows]

    def get_mismatch(self, mismatch_id: int) -> MismatchRecord:
        row = self._fetch_one(
            """
            SELECT m.*, r.reference_datetime AS report_reference_datetime,
                   r.reference_type AS report_reference_type
              FROM spotcheck_mismatch m
              JOIN spotcheck_report r ON r.report_pk = m.report_pk
             WHERE m.mismatch_id = ?
            """,
            (mismatch_id,),
        )
        if row is None:
            raise MismatchNotFound(mismatch_id)
        return _row_to_record(row)

    def get_mismatch_history(
        self, data_source: SpotCheckDataSource, keys: Iterable[Key]
    ) -> dict[MismatchIdentity, list[MismatchRecord]]:
        """All stored records for the given keys, oldest first, grouped by identity."""
        wanted = {(key.kind, key.to_json()) for key in keys}
        history: dict[MismatchIdentity, list[MismatchRecord]] = defaultdict(list)
        key_jsons = sorted({key_json for _, key_json in wanted})
        for start in range(0, len(key_jsons), _IN_CHUNK):
            chunk = key_jsons[start : start + _IN_CHUNK]
            placeholders = ", ".join("?" for _ in chunk)
            rows = self._fetch_all(
                f"""
                SELECT m.*, r.reference_datetime AS report_reference_datetime,
                       r.reference_type AS report_reference_type
                  FROM spotcheck_mismatch m
                  JOIN spotcheck_report r ON r.report_pk = m.report_pk
                 WHERE m.data_source = ? AND m.key_json IN ({placeholders})
                 ORDER BY m.report_datetime ASC, m.mismatch_id ASC
                """,
                (SpotCheckDataSource(data_source).value, *chunk),
            )
            for row in rows:
                if (row["key_kind"], row["key_json"]) not in wanted:
                    continue
                record = _row_to_record(row)
                history[record.identity].append(record)
        return dict(history)

    def query_open_mismatches(self, query: OpenMismatchQuery) -> PaginatedList:
        ref_types = sorted(ref_type.value for ref_type in query.reference_types)
        scope = f"m.reference_type IN ({', '.join('?' for _ in ref_types)})"
        clauses = ["state = ?"]
        params: list[object] = [*ref_types, MismatchState.OPEN.value]
        if query.observed_after is not None:
            clauses.append("observed_datetime >= ?")
            params.append(to_iso(query.observed_after))
        if query.mismatch_types:
            types = sorted(mismatch_type.value for mismatch_type in query.mismatch_types)
            clauses.append(f"mismatch_type IN ({', '.join('?' for _ in types)})")
            params.extend(types)
        statuses = sorted(status.value for status in query.ignore_statuses)
        clauses.append(f"ignore_status IN ({', '.join('?' for _ in statuses)})")
        params.extend(statuses)
        if query.statuses:
            status_clauses = []
            if MismatchStatus.NEW in query.statuses:
                status_clauses.append("first_seen_datetime >= observed_datetime")
            if MismatchStatus.EXISTING in query.statuses:
                status_clauses.append("first_seen_datetime < observed_datetime")
            clauses.append("(" + " OR ".join(status_clauses) + ")")
        if query.keys is not None:
            if not query.keys:
                return PaginatedList(items=[], total=0, limit=query.limit, offset=query.offset)
            key_clauses = []
            for key in query.keys:
                key_clauses.append("(key_kind = ? AND key_json = ?)")
                params.extend([key.kind, key.to_json()])
            clauses.append("(" + " OR ".join(key_clauses) + ")")
        where = " AND ".join(clauses)
        prefix = _CURRENT_MISMATCHES.format(scope=scope)

        total_row = self._fetch_one(
            prefix + f"SELECT COUNT(*) AS total FROM latest WHERE {where}", tuple(params)
        )
        column = _ORDER_COLUMNS[query.order_by]
        direction = "ASC" if query.order == "ASC" else "DESC"
        rows = self._fetch_all(
            prefix
            + f"""
            SELECT * FROM latest
             WHERE {where}
             ORDER BY {column} {direction}, mismatch_id {direction}
             LIMIT ? OFFSET ?
            """,
            (*params, query.limit if query.limit is not None else -1, query.offset),
        )
        return PaginatedList(
            items=[_row_to_record(row) for row in rows],
            total=int(total_row["total"]) if total_row else 0,
            limit=query.limit,
            offset=query.offset,
        )

    def get_open_mismatch_summary(
        self,
        ref_types: Iterable[SpotCheckRefType],
        observed_after: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Counts of open mismatches per reference type, mismatch type and status."""
        ref_values = sorted({SpotCheckRefType(ref_type).value for ref_type in ref_types})
        if not ref_values:
            return []
        scope = f"m.reference_type IN ({', '.join('?' for _ in ref_values)})"
        params: list[object] = [*ref_values, MismatchState.OPEN.value]
        where = "state = ?"
        if observed_after is not None:
            where += " AND observed_datetime >= ?"
            params.append(to_iso(observed_after))
        rows = self._fetch_all(
            _CURRENT_MISMATCHES.format(scope=scope)
            + f"""
            SELECT reference_type, mismatch_type,
                   CASE WHEN first_seen_datetime >= observed_datetime THEN 'NEW'
                        ELSE 'EXISTING' END AS status,
                   ignore_status != 'NOT_IGNORED' AS ignored,
                   COUNT(*) AS count
              FROM latest
             WHERE {where}
             GROUP BY reference_type, mismatch_type, status, ignored
             ORDER BY reference_type, mismatch_type, status
            """,
            tuple(params),
        )
        return [
            {
                "reference_type": SpotCheckRefType(row["reference_type"]),
                "mismatch_type": SpotCheckMismatchType(row["mismatch_type"]),
                "status": MismatchStatus(row["status"]),
                "ignored": bool(row["ignored"]),
                "count": int(row["count"]),
            }
            for row in rows
        ]

    def _load_report(self, row: sqlite3.Row) -> Report:
        report_pk = row["report_pk"]
        report = Report(report_id=_row_to_report_id(row), notes=row["notes"])
        reference_id = report.reference_id
        for key_row in self._fetch_all(
            "SELECT key_kind, key_json FROM spotcheck_checked_key WHERE report_pk = ?",
            (report_pk,),
        ):
            report.checked_keys.add(key_from_json(key_row["key_kind"], key_row["key_json"]))
        for obs_row in self._fetch_all(
            "SELECT * FROM spotcheck_observation WHERE report_pk = ?", (report_pk,)
        ):
            key = key_from_json(obs_row["key_kind"], obs_row["key_json"])
            report.observations[key] = Observation(
                reference_id=reference_id,
                key=key,
                observed_datetime=from_iso(obs_row["observed_datetime"]),
                report_datetime=report.report_datetime,
            )
        for mismatch_row in self._fetch_all(
            """
            SELECT m.*, ? AS report_reference_datetime, ? AS report_reference_type
              FROM spotcheck_mismatch m
             WHERE m.report_pk = ?
             ORDER BY m.mismatch_id
            """,
            (row["reference_datetime"], row["reference_type"], report_pk),
        ):
            record = _row_to_record(mismatch_row)
            observation = report.observations.get(record.key)
            if observation is None:
                observation = Observation(
                    reference_id=reference_id,
                    key=record.key,
                    observed_datetime=record.observed_datetime,
                    report_datetime=report.report_datetime,
                )
                report.observations[record.key] = observation
            observation.add_mismatch(record_to_mismatch(record))
        return report

    def _summary_counts(self, report_pks: list[int]) -> dict[int, dict[str, Any]]:
        if not report_pks:
            return {}
        placeholders = ", ".join("?" for _ in report_pks)
        rows = self._fetch_all(
            f"""
            SELECT report_pk, state, mismatch_type, ignore_status,
                   CASE WHEN state = 'CLOSED' THEN 'RESOLVED'
                        WHEN first_seen_datetime >= observed_datetime THEN 'NEW'
                        ELSE 'EXISTING' END AS status,
                   COUNT(*) AS count
              FROM spotcheck_mismatch
             WHERE report_pk IN ({placeholders})
             GROUP BY report_pk, state, mismatch_type, ignore_status, status
            """,
            tuple(report_pks),
        )
        counts: dict[int, dict[str, Any]] = {}
        for row in rows:
            entry = counts.setdefault(row["report_pk"], _empty_counts())
            count = int(row["count"])
            if row["ignore_status"] != SpotCheckMismatchIgnore.NOT_IGNORED.value:
                entry["ignored_count"] += count
                continue
            entry["state_counts"][row["state"]] = entry["state_counts"].get(row["state"], 0) + count
            entry["status_counts"][row["status"]] = (
                entry["status_counts"].get(row["status"], 0) + count
            )
            entry["type_counts"][row["mismatch_type"]] = (
                entry["type_counts"].get(row["mismatch_type"], 0) + count
            )
        return counts


def record_to_mismatch(record: MismatchRecord) -> SpotCheckMismatch:
    return SpotCheckMismatch(
        mismatch_type=record.mismatch_type,
        observed_data=record.observed_data,
        reference_data=record.reference_data,
        mismatch_id=record.mismatch_id,
        state=record.state,
        ignore_status=record.ignore_status,
        issue_ids=list(record.issue_ids),
        first_seen_datetime=record.first_seen_datetime,
    )


def _empty_counts() -> dict[str, Any]:
    return {"state_counts": {}, "status_counts": {}, "type_counts": {}, "ignored_count": 0}


def _report_id_params(report_id: ReportId) -> tuple[str, str, str]:
    return (
        report_id.reference_type.value,
        to_iso(report_id.reference_datetime),
        to_iso(report_id.report_datetime),
    )


def _row_to_report_id(row: sqlite3.Row) -> ReportId:
    return ReportId(
        reference_type=SpotCheckRefType(row["reference_type"]),
        reference_datetime=from_iso(row["reference_datetime"]),
        report_datetime=from_iso(row["report_datetime"]),
    )


def _record_params(report_pk: int, record: MismatchRecord) -> tuple[object, ...]:
    return (
        report_pk,
        record.reference_type.value,
        to_iso(record.reference_id.reference_datetime),
        record.data_source.value,
        record.content_type.value,
        record.key.kind,
        record.key.to_json(),
        record.mismatch_type.value,
        record.state.value,
        record.ignore_status.value,
        json.dumps(list(record.issue_ids)),
        to_iso(record.first_seen_datetime),
        to_iso(record.observed_datetime),
        to_iso(record.report_datetime),
        record.observed_data,
        record.reference_data,
    )


def _row_to_record(row: sqlite3.Row) -> MismatchRecord:
    reference_type = SpotCheckRefType(row["reference_type"])
    report_datetime = from_iso(row["report_datetime"])
    return MismatchRecord(
        report_id=ReportId(
            reference_type=SpotCheckRefType(row["report_reference_type"]),
            reference_datetime=from_iso(row["report_reference_datetime"]),
            report_datetime=report_datetime,
        ),
        reference_id=ReferenceId(
            reference_type=reference_type,
            reference_datetime=from_iso(row["reference_datetime"]),
        ),
        key=key_from_json(row["key_kind"], row["key_json"]),
        mismatch_type=SpotCheckMismatchType(row["mismatch_type"]),
        state=MismatchState(row["state"]),
        ignore_status=SpotCheckMismatchIgnore(row["ignore_status"]),
        first_seen_datetime=from_iso(row["first_seen_datetime"]),
        observed_datetime=from_iso(row["observed_datetime"]),
        report_datetime=report_datetime,
        observed_data=row["observed_data"],
        reference_data=row["reference_data"],
        issue_ids=tuple(json.loads(row["issue_ids_json"] or "[]")),
        mismatch_id=row["mismatch_id"],
    )


__all__ = ["SqliteReportStore", "record_to_mismatch"]
