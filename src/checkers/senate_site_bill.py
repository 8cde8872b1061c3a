"""Senate website bill dump vs. local bill content."""

from __future__ import annotations

from checkers.base import BaseChecker
from schemas.internal.content import Bill, BillAmendment
from schemas.internal.references import SenateSiteBill
from schemas.internal.spotcheck import Observation, SpotCheckMismatchType, SpotCheckRefType

_T = SpotCheckMismatchType


def render_action(action) -> str:
    return action.render()


def render_vote(vote) -> str:
    return vote.render()


def upper_names(names: list[str]) -> list[str]:
    return [name.strip().upper() for name in names]


class SenateSiteBillChecker(BaseChecker[Bill, SenateSiteBill]):
    reference_type = SpotCheckRefType.SENATE_SITE_BILLS

    def check(self, content: Bill, reference: SenateSiteBill, observation: Observation) -> Observation:
        amendment = content.amendment(reference.version) or BillAmendment(
            version=reference.version, published=False
        )
        self.check_string(
            observation, content.active_version, reference.active_version, _T.BILL_ACTIVE_AMENDMENT
        )
        self.check_boolean(
            observation,
            content.is_published(reference.version),
            reference.published,
            "Published",
            _T.BILL_PUBLISH_STATUS,
        )
        self.check_string(observation, content.title, reference.title, _T.BILL_TITLE)
        self.check_string(observation, content.summary, reference.summary, _T.BILL_SUMMARY)
        self.check_string_upper(observation, content.sponsor, reference.sponsor, _T.BILL_SPONSOR)
        self.check_collection(
            observation,
            upper_names(amendment.cosponsors),
            upper_names(reference.cosponsors),
            _T.BILL_COSPONSOR,
            separator=", ",
        )
        self.check_collection(
            observation,
            upper_names(amendment.multisponsors),
            upper_names(reference.multisponsors),
            _T.BILL_MULTISPONSOR,
            separator=", ",
        )
        self.check_string(
            observation,
            amendment.law_section or content.law_section,
            reference.law_section,
            _T.BILL_LAW_SECTION,
        )
        self.check_string(
            observation, amendment.law_code or content.law_code, reference.law_code, _T.BILL_LAW_CODE
        )
        self.check_text(observation, amendment.act_clause, reference.act_clause, _T.BILL_ACT_CLAUSE)
        self.check_collection(
            observation,
            sorted(item.upper() for item in amendment.same_as),
            sorted(item.upper() for item in reference.same_as),
            _T.BILL_SAME_AS,
        )
        self.check_collection(
            observation, content.actions, reference.actions, _T.BILL_ACTION, render_action, "\n"
        )
        self.check_string_upper(
            observation, content.last_status, reference.last_status, _T.BILL_LAST_STATUS
        )
        self.check_text(observation, amendment.full_text, reference.full_text, _T.BILL_TEXT_CONTENT)
        self.check_text(observation, amendment.memo, reference.memo, _T.BILL_MEMO)
        self.check_collection(
            observation,
            sorted(amendment.votes, key=lambda vote: vote.vote_date),
            sorted(reference.votes, key=lambda vote: vote.vote_date),
            _T.BILL_VOTE_ROLL,
            render_vote,
            "\n",
        )
        return observation


__all__ = ["SenateSiteBillChecker"]
