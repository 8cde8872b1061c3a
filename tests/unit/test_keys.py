import pytest

from schemas.internal.keys import (
    BaseBillId,
    BillId,
    CalendarEntryListId,
    key_from_json,
    key_from_map,
    parse_key,
    session_year_of,
)


def test_bill_id_parse_and_display() -> None:
    bill_id = BillId.parse("s100a-2024")

    assert bill_id.print_no == "S100"
    assert bill_id.version == "A"
    assert bill_id.session == 2023
    assert str(bill_id) == "S100A-2023"
    assert bill_id.base_bill_id == BaseBillId.parse("S100-2023")


def test_original_version_aliases_normalize_to_empty() -> None:
    assert BillId(print_no="S100", session=2023, version="ORIGINAL").version == ""
    assert BillId(print_no="S100", session=2023, version="default").version == ""


def test_bill_and_base_bill_keys_are_distinct() -> None:
    base = BaseBillId.parse("S100-2023")
    assert base.with_version("") != base
    assert len({base, base.with_version(""), base.with_version("A")}) == 3


@pytest.mark.parametrize("text", ["S100-23", "100-2023", "S100AB-2023", ""])
def test_invalid_bill_ids_are_rejected(text: str) -> None:
    with pytest.raises(ValueError):
        BillId.parse(text)


def test_session_year_of() -> None:
    assert session_year_of(2023) == 2023
    assert session_year_of(2024) == 2023


def test_key_map_round_trip_for_each_kind() -> None:
    keys = [
        BillId.parse("A200B-2023"),
        BaseBillId.parse("A200-2023"),
        CalendarEntryListId(year=2024, cal_no=12, list_type="active", sequence=1),
    ]
    for key in keys:
        assert key_from_map(key.kind, key.to_key_map()) == key
        assert key_from_json(key.kind, key.to_json()) == key


def test_parse_key_for_calendar_lists() -> None:
    key = parse_key("calendar_entry_list", "2024-12-ACTIVE-1")
    assert key == CalendarEntryListId(year=2024, cal_no=12, list_type="ACTIVE", sequence=1)
    assert str(key) == "2024-12-ACTIVE-1"

    with pytest.raises(ValueError):
        parse_key("calendar_entry_list", "2024-12")
    with pytest.raises(ValueError):
        parse_key("agenda", "1")
