"""Peer openleg instance bill vs. local bill content."""

from __future__ import annotations

from checkers.base import BaseChecker
from checkers.senate_site_bill import render_action, upper_names
from schemas.internal.content import Bill, BillAmendment
from schemas.internal.spotcheck import Observation, SpotCheckMismatchType, SpotCheckRefType

_T = SpotCheckMismatchType


def publish_flags(bill: Bill) -> list[str]:
    return [
        f"{version or 'ORIGINAL'}:{'Y' if amendment.published else 'N'}"
        for version, amendment in sorted(bill.amendments.items())
    ]


class OpenlegBillChecker(BaseChecker[Bill, Bill]):
    """Both sides are full bills; amendment-level fields use each side's active amendment."""

    reference_type = SpotCheckRefType.OPENLEG_BILL

    def check(self, content: Bill, reference: Bill, observation: Observation) -> Observation:
        observed = content.active_amendment or BillAmendment(version=content.active_version)
        expected = reference.active_amendment or BillAmendment(version=reference.active_version)

        self.check_string(
            observation, content.active_version, reference.active_version, _T.BILL_ACTIVE_AMENDMENT
        )
        self.check_collection(
            observation,
            publish_flags(content),
            publish_flags(reference),
            _T.BILL_PUBLISH_STATUS,
        )
        self.check_string(observation, content.title, reference.title, _T.BILL_TITLE)
        self.check_string(observation, content.summary, reference.summary, _T.BILL_SUMMARY)
        self.check_string_upper(observation, content.sponsor, reference.sponsor, _T.BILL_SPONSOR)
        self.check_collection(
            observation,
            upper_names(observed.cosponsors),
            upper_names(expected.cosponsors),
            _T.BILL_COSPONSOR,
            separator=", ",
        )
        self.check_collection(
            observation,
            upper_names(observed.multisponsors),
            upper_names(expected.multisponsors),
            _T.BILL_MULTISPONSOR,
            separator=", ",
        )
        self.check_string(
            observation,
            observed.law_section or content.law_section,
            expected.law_section or reference.law_section,
            _T.BILL_LAW_SECTION,
        )
        self.check_string(
            observation,
            observed.law_code or content.law_code,
            expected.law_code or reference.law_code,
            _T.BILL_LAW_CODE,
        )
        self.check_text(observation, observed.act_clause, expected.act_clause, _T.BILL_ACT_CLAUSE)
        self.check_collection(
            observation,
            sorted(item.upper() for item in observed.same_as),
            sorted(item.upper() for item in expected.same_as),
            _T.BILL_SAME_AS,
        )
        self.check_collection(
            observation, content.actions, reference.actions, _T.BILL_ACTION, render_action, "\n"
        )
        self.check_string_upper(
            observation, content.last_status, reference.last_status, _T.BILL_LAST_STATUS
        )
        self.check_text(observation, observed.full_text, expected.full_text, _T.BILL_TEXT_CONTENT)
        self.check_text(observation, observed.memo, expected.memo, _T.BILL_MEMO)
        return observation


__all__ = ["OpenlegBillChecker"]
