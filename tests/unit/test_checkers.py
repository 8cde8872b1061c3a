from datetime import date, datetime, timezone

import pytest

from checkers.base import canonical_string, normalize_text, stringify_collection
from checkers.openleg_bill import OpenlegBillChecker
from checkers.registry import CheckerRegistry, default_registry
from checkers.scraped_bill import ScrapedBillChecker, scrape_text
from checkers.senate_site_bill import SenateSiteBillChecker
from checkers.senate_site_calendar import SenateSiteCalendarChecker
from schemas.internal.content import (
    Bill,
    BillAction,
    BillAmendment,
    BillVote,
    CalendarEntry,
    CalendarEntryList,
)
from schemas.internal.keys import BaseBillId, BillId, CalendarEntryListId
from schemas.internal.references import (
    BillScrapeReference,
    BillScrapeVote,
    SenateSiteBill,
    SenateSiteCalendar,
)
from schemas.internal.spotcheck import (
    Observation,
    ReferenceId,
    SpotCheckMismatchType,
    SpotCheckRefType,
)
from spotcheck.errors import CheckerNotRegistered

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def _observation(ref_type: SpotCheckRefType, key) -> Observation:
    return Observation(
        reference_id=ReferenceId(reference_type=ref_type, reference_datetime=T0),
        key=key,
        observed_datetime=T0,
    )


def _bill(**fields) -> Bill:
    amendment = BillAmendment(
        version="",
        cosponsors=["Smith", "Jones"],
        same_as=["A200"],
        full_text="AN ACT  to amend\nthe law",
        memo="memo",
        votes=[
            BillVote(
                vote_date=date(2024, 2, 1),
                members_by_code={"AYE": ["Smith", "Jones"], "NAY": ["Doe"]},
            )
        ],
    )
    values = {
        "print_no": "S100",
        "session": 2023,
        "title": "FOO",
        "sponsor": "smith",
        "law_section": "Education Law",
        "actions": [BillAction(action_date=date(2024, 1, 3), chamber="senate", text="REFERRED")],
        "amendments": {"": amendment},
    }
    values.update(fields)
    return Bill(**values)


def _site_bill(**fields) -> SenateSiteBill:
    values = {
        "reference_datetime": T0,
        "print_no": "S100",
        "session": 2023,
        "title": "FOO",
        "sponsor": "SMITH",
        "cosponsors": ["smith", "jones"],
        "law_section": "Education Law",
        "same_as": ["a200"],
        "actions": [BillAction(action_date=date(2024, 1, 3), chamber="SENATE", text="REFERRED")],
        "full_text": "AN ACT to amend the law",
        "memo": "memo",
        "votes": [
            BillVote(
                vote_date=date(2024, 2, 1),
                members_by_code={"NAY": ["Doe"], "AYE": ["Jones", "Smith"]},
            )
        ],
    }
    values.update(fields)
    return SenateSiteBill(**values)


def test_canonicalization_helpers() -> None:
    assert canonical_string(None) == ""
    assert canonical_string("  x ") == "x"
    assert normalize_text("a \n\t b") == "a b"
    assert stringify_collection(["a", "b"], separator=", ") == "a, b"


def test_senate_site_bill_match_produces_no_mismatches() -> None:
    observation = _observation(SpotCheckRefType.SENATE_SITE_BILLS, BillId.parse("S100-2023"))
    SenateSiteBillChecker().check(_bill(), _site_bill(), observation)
    assert observation.mismatches == {}


def test_senate_site_bill_title_mismatch() -> None:
    observation = _observation(SpotCheckRefType.SENATE_SITE_BILLS, BillId.parse("S100-2023"))
    SenateSiteBillChecker().check(_bill(title="BAR"), _site_bill(title="FOO"), observation)

    assert set(observation.mismatches) == {SpotCheckMismatchType.BILL_TITLE}
    mismatch = observation.mismatches[SpotCheckMismatchType.BILL_TITLE]
    assert mismatch.observed_data == "BAR"
    assert mismatch.reference_data == "FOO"


def test_senate_site_bill_unknown_amendment_is_unpublished() -> None:
    observation = _observation(SpotCheckRefType.SENATE_SITE_BILLS, BillId.parse("S100A-2023"))
    SenateSiteBillChecker().check(_bill(), _site_bill(version="A"), observation)

    publish = observation.mismatches[SpotCheckMismatchType.BILL_PUBLISH_STATUS]
    assert publish.observed_data == "Published: NO"
    assert publish.reference_data == "Published: YES"


def test_calendar_checker_compares_entries_in_cal_no_order() -> None:
    list_id = CalendarEntryListId(year=2024, cal_no=5, list_type="FLOOR")
    content = CalendarEntryList(
        list_id=list_id,
        cal_date=date(2024, 3, 1),
        release_datetime=datetime(2024, 3, 1, 9, 0, 0, 250, tzinfo=timezone.utc),
        entries=[CalendarEntry(cal_no=2, print_no="S2"), CalendarEntry(cal_no=1, print_no="S1")],
    )
    reference = SenateSiteCalendar(
        reference_datetime=T0,
        year=2024,
        cal_no=5,
        list_type="floor",
        cal_date=date(2024, 3, 1),
        release_datetime=datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc),
        entries=[CalendarEntry(cal_no=1, print_no="s1"), CalendarEntry(cal_no=3, print_no="S3")],
    )
    observation = _observation(SpotCheckRefType.SENATE_SITE_CALENDAR, list_id)
    SenateSiteCalendarChecker().check(content, reference, observation)

    assert set(observation.mismatches) == {SpotCheckMismatchType.CALENDAR_ENTRY_LIST}
    mismatch = observation.mismatches[SpotCheckMismatchType.CALENDAR_ENTRY_LIST]
    assert mismatch.observed_data == "1:S1\n2:S2"
    assert mismatch.reference_data == "1:S1\n3:S3"


def test_scrape_text_strips_line_numbers() -> None:
    assert scrape_text("  1  AN ACT\n  2  to amend") == "AN ACT TO AMEND"


def test_scraped_bill_checker_votes_and_not_found() -> None:
    base = BaseBillId.parse("S100-2023")
    reference = BillScrapeReference(
        base_bill_id=base,
        reference_datetime=T0,
        text="AN ACT to amend the law",
        memo="MEMO",
        votes=[
            BillScrapeVote(
                vote_date=date(2024, 2, 1), members_by_code={"AYE": ["Smith", "Jones"]}
            )
        ],
    )
    observation = _observation(SpotCheckRefType.LBDC_SCRAPED_BILL, base)
    ScrapedBillChecker().check(_bill(), reference, observation)
    assert set(observation.mismatches) == {SpotCheckMismatchType.BILL_SCRAPE_VOTE}

    missing = _observation(SpotCheckRefType.LBDC_SCRAPED_BILL, base)
    ScrapedBillChecker().check(_bill(), BillScrapeReference.missing(base, T0), missing)
    assert set(missing.mismatches) == {SpotCheckMismatchType.REFERENCE_DATA_MISSING}


def test_openleg_checker_compares_publish_flags() -> None:
    content = _bill()
    reference = _bill(
        amendments={
            "": content.amendments[""],
            "A": BillAmendment(version="A", published=False),
        }
    )
    observation = _observation(SpotCheckRefType.OPENLEG_BILL, BaseBillId.parse("S100-2023"))
    OpenlegBillChecker().check(content, reference, observation)

    assert set(observation.mismatches) == {SpotCheckMismatchType.BILL_PUBLISH_STATUS}
    assert observation.mismatches[SpotCheckMismatchType.BILL_PUBLISH_STATUS].reference_data == (
        "ORIGINAL:Y A:N"
    )


def test_registry_lookup_and_freeze() -> None:
    registry = default_registry()
    assert registry.frozen
    assert isinstance(registry.get(SpotCheckRefType.OPENLEG_BILL), OpenlegBillChecker)
    assert SpotCheckRefType.LBDC_DAYBREAK not in registry
    with pytest.raises(CheckerNotRegistered):
        registry.get(SpotCheckRefType.LBDC_DAYBREAK)
    with pytest.raises(RuntimeError):
        registry.register(SpotCheckRefType.LBDC_DAYBREAK, OpenlegBillChecker())


def test_registry_registration_before_freeze() -> None:
    registry = CheckerRegistry()
    registry.register(SpotCheckRefType.OPENLEG_BILL, OpenlegBillChecker())
    assert registry.reference_types() == [SpotCheckRefType.OPENLEG_BILL]
