"""LRS scraped bill text, memo and Senate votes vs. local bill content."""

from __future__ import annotations

import re
from datetime import date

from checkers.base import BaseChecker, normalize_text
from schemas.internal.content import Bill
from schemas.internal.references import BillScrapeReference
from schemas.internal.spotcheck import (
    Observation,
    SpotCheckMismatch,
    SpotCheckMismatchType,
    SpotCheckRefType,
)

_T = SpotCheckMismatchType

# Line numbers and page markers the LRS text view prints in the left margin.
_LINE_NUMBER = re.compile(r"(?m)^\s*\d{1,3}(?=\s)")
_PAGE_BREAK = re.compile(r"\f")


def scrape_text(value: str | None) -> str:
    text = _PAGE_BREAK.sub(" ", value or "")
    text = _LINE_NUMBER.sub("", text)
    return normalize_text(text).upper()


def vote_roll(vote_date: date, members_by_code: dict[str, list[str]]) -> str:
    codes = []
    for code in sorted(members_by_code):
        names = ", ".join(sorted(name.strip().upper() for name in members_by_code[code]))
        codes.append(f"{code.strip().upper()}: {names}")
    return f"{vote_date.isoformat()} " + " | ".join(codes)


class ScrapedBillChecker(BaseChecker[Bill, BillScrapeReference]):
    reference_type = SpotCheckRefType.LBDC_SCRAPED_BILL

    def check(
        self, content: Bill, reference: BillScrapeReference, observation: Observation
    ) -> Observation:
        if reference.not_found:
            observation.add_mismatch(
                SpotCheckMismatch(
                    mismatch_type=_T.REFERENCE_DATA_MISSING,
                    observed_data=str(reference.base_bill_id),
                    reference_data="",
                    notes="LRS reports the bill as not found",
                )
            )
            return observation

        amendment = content.amendment(reference.version)
        full_text = amendment.full_text if amendment else None
        memo = amendment.memo if amendment else None
        self.check_string(
            observation, scrape_text(full_text), scrape_text(reference.text), _T.BILL_TEXT_CONTENT
        )
        self.check_text(observation, memo, reference.memo, _T.BILL_MEMO, upper=True)

        content_votes = [
            vote_roll(vote.vote_date, vote.members_by_code)
            for vote in (amendment.votes if amendment else [])
            if vote.chamber.strip().upper() == "SENATE"
        ]
        reference_votes = [vote_roll(vote.vote_date, vote.members_by_code) for vote in reference.votes]
        self.check_collection(
            observation, sorted(content_votes), sorted(reference_votes), _T.BILL_SCRAPE_VOTE, separator="\n"
        )
        return observation


__all__ = ["ScrapedBillChecker", "scrape_text", "vote_roll"]
