"""Mismatch lifecycle: carry mismatch state from one report to the next."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from persistence.contracts import ReportRepository
from persistence.models import MismatchIdentity, MismatchRecord
from schemas.internal.spotcheck import (
    MismatchState,
    Observation,
    PriorMismatch,
    Report,
    SpotCheckMismatchIgnore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconciliation:
    report_mismatches: list[MismatchRecord] = field(default_factory=list)
    closed_mismatches: list[MismatchRecord] = field(default_factory=list)

    @property
    def records(self) -> list[MismatchRecord]:
        return [*self.report_mismatches, *self.closed_mismatches]


def decay_ignore_status(
    state: MismatchState, status: SpotCheckMismatchIgnore
) -> SpotCheckMismatchIgnore:
    """Ignore status a record carries into the next report.

    A one-off ignore lasts a single report; only a permanent ignore
    survives the close of a mismatch.
    """
    if state == MismatchState.CLOSED:
        if status == SpotCheckMismatchIgnore.IGNORE_PERMANENTLY:
            return status
        return SpotCheckMismatchIgnore.NOT_IGNORED
    if status == SpotCheckMismatchIgnore.IGNORE_ONCE:
        return SpotCheckMismatchIgnore.NOT_IGNORED
    return status


def reconcile(report: Report, current: Iterable[MismatchRecord]) -> Reconciliation:
    """Derive the records a report adds to the mismatch history.

    ``current`` is the newest stored record per lifecycle identity for the
    report's data source. The report's observations are updated in place
    with the carried-over lifecycle fields.
    """
    current_by_identity: dict[MismatchIdentity, MismatchRecord] = {
        record.identity: record for record in current
    }
    report_records: list[MismatchRecord] = []
    seen: set[MismatchIdentity] = set()

    for observation in report.observations.values():
        for mismatch_type, mismatch in list(observation.mismatches.items()):
            identity = (report.reference_type, observation.key, mismatch_type)
            seen.add(identity)
            prior = current_by_identity.get(identity)
            if prior is not None and prior.state == MismatchState.OPEN:
                first_seen = prior.first_seen_datetime
                ignore_status = prior.ignore_status
                issue_ids = prior.issue_ids
            else:
                first_seen = observation.observed_datetime
                ignore_status = SpotCheckMismatchIgnore.NOT_IGNORED
                issue_ids = ()
            ignore_status = decay_ignore_status(MismatchState.OPEN, ignore_status)
            record = MismatchRecord(
                report_id=report.report_id,
                reference_id=report.reference_id,
                key=observation.key,
                mismatch_type=mismatch_type,
                state=MismatchState.OPEN,
                ignore_status=ignore_status,
                first_seen_datetime=first_seen,
                observed_datetime=observation.observed_datetime,
                report_datetime=report.report_datetime,
                observed_data=mismatch.observed_data,
                reference_data=mismatch.reference_data,
                issue_ids=tuple(issue_ids),
            )
            report_records.append(record)
            observation.add_mismatch(
                mismatch.model_copy(
                    update={
                        "state": MismatchState.OPEN,
                        "ignore_status": ignore_status,
                        "issue_ids": list(issue_ids),
                        "first_seen_datetime": first_seen,
                    }
                )
            )

    authorized = report.reference_type.checked_mismatch_types()
    closed: list[MismatchRecord] = []
    for identity, record in current_by_identity.items():
        if record.state != MismatchState.OPEN:
            continue
        if record.reference_type != report.reference_type:
            continue
        if record.key not in report.checked_keys:
            continue
        if record.mismatch_type not in authorized or identity in seen:
            continue
        closed.append(
            record.copy(
                report_id=report.report_id,
                reference_id=report.reference_id,
                state=MismatchState.CLOSED,
                ignore_status=decay_ignore_status(MismatchState.CLOSED, record.ignore_status),
                observed_datetime=report.report_datetime,
                report_datetime=report.report_datetime,
                mismatch_id=None,
            )
        )
    return Reconciliation(report_mismatches=report_records, closed_mismatches=closed)


def attach_prior_mismatches(
    observation: Observation, history: dict[MismatchIdentity, list[MismatchRecord]]
) -> None:
    for mismatch_type in observation.mismatches:
        records = history.get((observation.reference_type, observation.key, mismatch_type), [])
        observation.add_prior_mismatches(
            mismatch_type,
            (
                PriorMismatch(
                    report_datetime=record.report_datetime,
                    observed_datetime=record.observed_datetime,
                    state=record.state,
                    observed_data=record.observed_data,
                    reference_data=record.reference_data,
                )
                for record in records
            ),
        )


class MismatchLifecycleManager:
    def __init__(self, repository: ReportRepository) -> None:
        self._repository = repository

    def reconcile(self, report: Report, current: Iterable[MismatchRecord]) -> Reconciliation:
        return reconcile(report, current)

    def process(self, report: Report) -> Reconciliation:
        """Reconcile a freshly generated report and persist it with its records."""
        data_source = report.reference_type.data_source
        current = self._repository.get_current_mismatches(data_source)
        history = self._repository.get_mismatch_history(data_source, report.observations.keys())
        for observation in report.observations.values():
            attach_prior_mismatches(observation, history)
        reconciliation = reconcile(report, current)
        self._repository.save_report(report, reconciliation.records)
        logger.info(
            "Report %s: %d open and %d closed mismatch records",
            report.report_id,
            len(reconciliation.report_mismatches),
            len(reconciliation.closed_mismatches),
        )
        return reconciliation

    def set_ignore_status(self, mismatch_id: int, status: SpotCheckMismatchIgnore) -> None:
        self._repository.set_ignore_status(mismatch_id, status)

    def add_issue_id(self, mismatch_id: int, issue_id: str) -> None:
        self._repository.add_issue_id(mismatch_id, issue_id)

    def remove_issue_id(self, mismatch_id: int, issue_id: str) -> None:
        self._repository.remove_issue_id(mismatch_id, issue_id)


__all__ = [
    "MismatchLifecycleManager",
    "Reconciliation",
    "attach_prior_mismatches",
    "decay_ignore_status",
    "reconcile",
]
