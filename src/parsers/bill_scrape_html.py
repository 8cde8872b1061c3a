"""Parser for bill pages scraped from LRS."""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from persistence.models import ScrapeFile
from persistence.reference_store import SCRAPE_TIME_FORMAT
from schemas.internal.keys import BaseBillId
from schemas.internal.references import BillScrapeReference, BillScrapeVote
from spotcheck.errors import ParseError, ReferenceSourceUnavailable

logger = logging.getLogger(__name__)

LRS_OUTAGE_TEXT = "404 - Processing Error"
BILL_NOT_FOUND_TEXT = "Bill Status Information Not Found"

_PRINT_NO = re.compile(r"^([A-Za-z]\d+)(?:-([A-Za-z]))?$")
_AMENDED_PRINT_NO = re.compile(r"^([A-Z]\d+)([A-Z]?)$")
_FILE_NAME = re.compile(r"^(\d{4})-([A-Za-z]\d+)-(\d{8}T\d{6})\.html$")
_VOTE_LINK = 'a[href^="#VOTE"]'

_VOTE_CODES = {
    "AYE": "AYE",
    "Y": "AYE",
    "NAY": "NAY",
    "NO": "NAY",
    "N": "NAY",
    "EXC": "EXC",
    "E": "EXC",
    "ABS": "ABS",
    "ABD": "ABD",
    "AYEWR": "AYEWR",
    "AYE W/R": "AYEWR",
}


def element_text(element: Tag) -> str:
    """Whitespace-collapsed text with non-breaking spaces removed."""
    return " ".join(element.get_text().replace("\xa0", "").split())


class BillScrapeHtmlParser:
    def parse_file(self, scrape_file: ScrapeFile) -> BillScrapeReference:
        base_bill_id, scraped_at = parse_scrape_file_name(scrape_file.file_name)
        html = Path(scrape_file.file_path).read_text(encoding="utf-8", errors="replace")
        return self.parse(html, base_bill_id=base_bill_id, reference_datetime=scraped_at)

    def parse(
        self, html: str, *, base_bill_id: BaseBillId, reference_datetime: datetime
    ) -> BillScrapeReference:
        if self.is_lrs_outage(html):
            raise ReferenceSourceUnavailable("LRS", f"Outage page returned for {base_bill_id}")
        soup = BeautifulSoup(html, "html.parser")
        if self.is_bill_missing(soup):
            logger.info("LRS has no record of %s", base_bill_id)
            return BillScrapeReference.missing(base_bill_id, reference_datetime)

        print_no = self.parse_print_no(soup)
        base_print_no, version = _AMENDED_PRINT_NO.match(print_no).groups()
        if BaseBillId(print_no=base_print_no, session=base_bill_id.session) != base_bill_id:
            raise ParseError(f"Scraped print no {print_no} does not belong to {base_bill_id}")
        return BillScrapeReference(
            base_bill_id=base_bill_id,
            version=version,
            reference_datetime=reference_datetime,
            text=self.parse_text(soup),
            memo=self.parse_memo(soup),
            votes=self.parse_votes(soup),
        )

    def parse_print_no(self, soup: BeautifulSoup) -> str:
        element = soup.select_one("span.nv_bot_info > strong")
        if element is None:
            raise ParseError("Could not locate the scraped bill print no")
        text = element_text(element)
        match = _PRINT_NO.match(text)
        if not match:
            raise ParseError(f"Could not parse scraped bill print no: {text!r}")
        base, version = match.groups()
        return f"{base}{version or ''}".upper()

    def parse_text(self, soup: BeautifulSoup) -> str:
        """Bill text is every ``pre`` before the first ``hr.noprint`` in the contents div."""
        contents = soup.find(id="nv_bot_contents")
        if contents is None:
            raise ParseError("Could not locate scraped bill contents")
        parts: list[str] = []
        for child in contents.find_all(recursive=False):
            if child.name == "pre":
                _collect_text(child, parts)
            elif child.name == "hr" and "noprint" in (child.get("class") or []):
                break
        return "".join(parts)

    def parse_memo(self, soup: BeautifulSoup) -> str:
        element = soup.select_one("pre:last-of-type")
        if element is None:
            return ""
        parts: list[str] = []
        _collect_text(element, parts)
        return "".join(parts)

    def parse_votes(self, soup: BeautifulSoup) -> list[BillScrapeVote]:
        """Senate floor votes; Assembly votes are skipped."""
        contents = soup.find(id="nv_bot_contents")
        if contents is None:
            return []
        tables = contents.select("table")
        for index, table in enumerate(tables):
            links = table.select(_VOTE_LINK)
            if not links:
                continue
            if len(links) == 1:
                if index + 1 >= len(tables):
                    raise ParseError("Vote summary table has no vote table after it")
                return self._parse_single_vote(table, tables[index + 1])
            return self._parse_multiple_votes(table)
        return []

    def is_bill_missing(self, soup: BeautifulSoup) -> bool:
        contents = soup.find(id="nv_bot_contents")
        if contents is None:
            return False
        red = contents.select_one('font[color="red"]')
        return red is not None and element_text(red) == BILL_NOT_FOUND_TEXT

    def is_lrs_outage(self, html: str) -> bool:
        soup = BeautifulSoup(html, "html.parser")
        heading = soup.find("h2")
        return heading is not None and element_text(heading).startswith(LRS_OUTAGE_TEXT)

    def _parse_single_vote(self, summary: Tag, vote_table: Tag) -> list[BillScrapeVote]:
        first_row = summary.find("tr")
        if first_row is None or _chamber(first_row) != "SENATE":
            return []
        link = summary.select_one(_VOTE_LINK)
        return [
            BillScrapeVote(
                vote_date=_vote_date(element_text(link)),
                members_by_code=_parse_vote_table(vote_table),
            )
        ]

    def _parse_multiple_votes(self, summary: Tag) -> list[BillScrapeVote]:
        votes = []
        container = summary.parent or summary
        for row in summary.find_all("tr"):
            if _chamber(row) != "SENATE":
                continue
            link = row.select_one(_VOTE_LINK)
            if link is None:
                continue
            vote_id = str(link.get("href", "")).lstrip("#")
            vote_table = container.select_one(f'a[name="{vote_id}"] ~ table')
            if vote_table is None:
                raise ParseError(f"Could not locate vote table for {vote_id}")
            votes.append(
                BillScrapeVote(
                    vote_date=_vote_date(element_text(link)),
                    members_by_code=_parse_vote_table(vote_table),
                )
            )
        return votes


def parse_scrape_file_name(file_name: str) -> tuple[BaseBillId, datetime]:
    match = _FILE_NAME.match(file_name)
    if not match:
        raise ParseError(f"Unrecognized scrape file name: {file_name}")
    session, print_no, scraped = match.groups()
    scraped_at = datetime.strptime(scraped, SCRAPE_TIME_FORMAT).replace(tzinfo=timezone.utc)
    return BaseBillId(print_no=print_no, session=int(session)), scraped_at


def _collect_text(element: Tag, parts: list[str]) -> None:
    # Underlined text marks insertions and is represented in capitals.
    for node in element.children:
        if isinstance(node, Comment):
            continue
        if isinstance(node, Tag):
            if node.name == "u":
                parts.append(" ".join(node.get_text().split()).upper())
            else:
                _collect_text(node, parts)
        elif isinstance(node, NavigableString):
            parts.append(str(node))


def _chamber(row: Tag) -> str:
    cells = [child for child in row.children if isinstance(child, Tag)]
    if len(cells) < 3:
        return ""
    words = element_text(cells[2]).split()
    return words[0].upper() if words else ""


def _vote_date(text: str) -> date:
    try:
        return datetime.strptime(text.strip(), "%m/%d/%y").date()
    except ValueError as exc:
        raise ParseError(f"Invalid vote date: {text!r}") from exc


def _parse_vote_table(table: Tag) -> dict[str, list[str]]:
    cells = table.find_all("td")
    members: dict[str, list[str]] = defaultdict(list)
    for index in range(0, len(cells) - 1, 2):
        raw_code = element_text(cells[index]).upper()
        name = element_text(cells[index + 1])
        if not raw_code and not name:
            continue
        code = _VOTE_CODES.get(raw_code)
        if code is None:
            raise ParseError(f"Unknown vote code: {raw_code!r}")
        members[code].append(name)
    return {code: sorted(names) for code, names in members.items()}


__all__ = [
    "BILL_NOT_FOUND_TEXT",
    "BillScrapeHtmlParser",
    "LRS_OUTAGE_TEXT",
    "element_text",
    "parse_scrape_file_name",
]
