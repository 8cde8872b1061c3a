from datetime import datetime, timedelta, timezone

import pytest

from schemas.internal.keys import BaseBillId, BillId
from schemas.internal.spotcheck import (
    MismatchState,
    MismatchStatus,
    Observation,
    ReferenceId,
    Report,
    ReportId,
    SpotCheckContentType,
    SpotCheckDataSource,
    SpotCheckMismatch,
    SpotCheckMismatchIgnore,
    SpotCheckMismatchType,
    SpotCheckRefType,
    derive_status,
)
from spotcheck.errors import InvalidMismatchForReferenceType

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def _report(ref_type=SpotCheckRefType.SENATE_SITE_BILLS) -> Report:
    return Report(
        report_id=ReportId(reference_type=ref_type, reference_datetime=T0, report_datetime=T0)
    )


def test_ref_type_metadata() -> None:
    ref_type = SpotCheckRefType.SENATE_SITE_CALENDAR
    assert ref_type.ref_name == "senate-site-calendar"
    assert ref_type.data_source == SpotCheckDataSource.NYSENATE
    assert ref_type.content_type == SpotCheckContentType.CALENDAR
    assert SpotCheckRefType.from_name("senate-site-calendar") is ref_type
    assert SpotCheckRefType.from_name("senate_site_calendar") is ref_type
    assert set(SpotCheckRefType.for_data_source(SpotCheckDataSource.LBDC)) == {
        SpotCheckRefType.LBDC_DAYBREAK,
        SpotCheckRefType.LBDC_SCRAPED_BILL,
    }
    with pytest.raises(ValueError):
        SpotCheckRefType.from_name("daybreak-calendar")


def test_every_ref_type_checks_presence() -> None:
    for ref_type in SpotCheckRefType:
        checked = ref_type.checked_mismatch_types()
        assert SpotCheckMismatchType.REFERENCE_DATA_MISSING in checked
        assert SpotCheckMismatchType.OBSERVE_DATA_MISSING in checked


def test_observation_rejects_unchecked_mismatch_type() -> None:
    observation = Observation(
        reference_id=ReferenceId(
            reference_type=SpotCheckRefType.SENATE_SITE_CALENDAR, reference_datetime=T0
        ),
        key=BillId.parse("S1-2023"),
        observed_datetime=T0,
    )
    with pytest.raises(InvalidMismatchForReferenceType):
        observation.add_mismatch(SpotCheckMismatch(mismatch_type=SpotCheckMismatchType.BILL_TITLE))
    assert observation.mismatches == {}


def test_observation_constructor_checks_initial_mismatches() -> None:
    reference_id = ReferenceId(
        reference_type=SpotCheckRefType.SENATE_SITE_CALENDAR, reference_datetime=T0
    )
    memo = SpotCheckMismatch(mismatch_type=SpotCheckMismatchType.BILL_MEMO)
    missing = SpotCheckMismatch(mismatch_type=SpotCheckMismatchType.OBSERVE_DATA_MISSING)

    with pytest.raises(InvalidMismatchForReferenceType):
        Observation(
            reference_id=reference_id,
            key=BillId.parse("S1-2023"),
            observed_datetime=T0,
            mismatches={SpotCheckMismatchType.BILL_MEMO: memo},
        )

    observation = Observation(
        reference_id=reference_id,
        key=BillId.parse("S1-2023"),
        observed_datetime=T0,
        mismatches={SpotCheckMismatchType.OBSERVE_DATA_MISSING: missing},
    )
    assert observation.mismatches == {SpotCheckMismatchType.OBSERVE_DATA_MISSING: missing}


def test_presence_factories() -> None:
    report = _report()
    key = BillId.parse("S1-2023")

    missing = report.add_ref_missing(key)
    assert missing.mismatches[SpotCheckMismatchType.REFERENCE_DATA_MISSING].observed_data == "S1-2023"

    other = BillId.parse("S2-2023")
    observe = Observation.observe_missing(report.reference_id, other, T0)
    assert observe.mismatches[SpotCheckMismatchType.OBSERVE_DATA_MISSING].reference_data == "S2-2023"

    empty = report.add_empty(BillId.parse("S3-2023"))
    assert empty.mismatches == {}
    assert report.checked_keys == {key, BillId.parse("S3-2023")}


def test_report_rejects_foreign_observations() -> None:
    report = _report()
    observation = Observation(
        reference_id=ReferenceId(
            reference_type=SpotCheckRefType.OPENLEG_BILL, reference_datetime=T0
        ),
        key=BaseBillId.parse("S1-2023"),
        observed_datetime=T0,
    )
    with pytest.raises(ValueError):
        report.add_observation(observation)


def test_report_counts_split_by_ignore() -> None:
    report = _report()
    observation = report.add_ref_missing(BillId.parse("S1-2023"))
    observation.add_mismatch(
        SpotCheckMismatch(
            mismatch_type=SpotCheckMismatchType.BILL_TITLE,
            ignore_status=SpotCheckMismatchIgnore.IGNORE_PERMANENTLY,
        )
    )

    assert report.mismatch_count() == 2
    assert report.mismatch_status_counts(ignored=False) == {MismatchState.OPEN: 1}
    assert report.mismatch_type_counts(ignored=True) == {SpotCheckMismatchType.BILL_TITLE: 1}


def test_derive_status() -> None:
    later = T0 + timedelta(days=1)
    assert derive_status(MismatchState.OPEN, T0, T0) == MismatchStatus.NEW
    assert derive_status(MismatchState.OPEN, T0, later) == MismatchStatus.EXISTING
    assert derive_status(MismatchState.CLOSED, T0, later) == MismatchStatus.RESOLVED
