from datetime import date, datetime, timezone

import pytest

from parsers.bill_scrape_html import BillScrapeHtmlParser, parse_scrape_file_name
from schemas.internal.keys import BaseBillId
from spotcheck.errors import ParseError, ReferenceSourceUnavailable

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)

S100 = BaseBillId.parse("S100-2023")

BILL_PAGE = """
<html><body>
<span class="nv_bot_info"><strong>{print_no}</strong></span>
<div id="nv_bot_contents">
<table><tr><td><a href="#VOTE1">03/01/24</a></td><td>S100A</td><td>{chamber} Vote</td></tr></table>
<table><tr><td>AYE</td><td>Smith</td><td>NAY</td><td>Jones</td><td>{code}</td><td>Adams</td></tr></table>
<pre>    1  AN ACT to amend <u>the  law</u></pre>
<hr class="noprint">
<pre>MEMO TEXT</pre>
</div>
</body></html>
"""


def _page(print_no: str = "S100-A", chamber: str = "Senate", code: str = "Y") -> str:
    return BILL_PAGE.format(print_no=print_no, chamber=chamber, code=code)


def test_parse_bill_page() -> None:
    reference = BillScrapeHtmlParser().parse(_page(), base_bill_id=S100, reference_datetime=T0)

    assert str(reference.bill_id) == "S100A-2023"
    assert reference.text == "    1  AN ACT to amend THE LAW"
    assert reference.memo == "MEMO TEXT"
    assert not reference.not_found
    (vote,) = reference.votes
    assert vote.vote_date == date(2024, 3, 1)
    assert vote.members_by_code == {"AYE": ["Adams", "Smith"], "NAY": ["Jones"]}


def test_assembly_votes_are_skipped() -> None:
    reference = BillScrapeHtmlParser().parse(
        _page(chamber="Assembly"), base_bill_id=S100, reference_datetime=T0
    )

    assert reference.votes == []


def test_unknown_vote_code() -> None:
    with pytest.raises(ParseError):
        BillScrapeHtmlParser().parse(_page(code="MAYBE"), base_bill_id=S100, reference_datetime=T0)


def test_print_no_must_match_requested_bill() -> None:
    with pytest.raises(ParseError):
        BillScrapeHtmlParser().parse(_page(print_no="S200"), base_bill_id=S100, reference_datetime=T0)


def test_missing_bill_page() -> None:
    html = (
        '<html><body><div id="nv_bot_contents">'
        '<font color="red">Bill Status Information Not Found</font>'
        "</div></body></html>"
    )

    reference = BillScrapeHtmlParser().parse(html, base_bill_id=S100, reference_datetime=T0)

    assert reference.not_found
    assert reference.bill_id == S100.with_version("")


def test_outage_page() -> None:
    html = "<html><body><h2>404 - Processing Error (bill lookup)</h2></body></html>"

    with pytest.raises(ReferenceSourceUnavailable):
        BillScrapeHtmlParser().parse(html, base_bill_id=S100, reference_datetime=T0)


def test_parse_scrape_file_name() -> None:
    assert parse_scrape_file_name("2023-S100-20240304T120000.html") == (S100, T0)
    with pytest.raises(ParseError):
        parse_scrape_file_name("S100.html")
