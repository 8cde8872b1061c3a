"""Reference type to checker lookup, frozen after startup."""

from __future__ import annotations

import logging
import threading

from checkers.base import BaseChecker
from checkers.openleg_bill import OpenlegBillChecker
from checkers.scraped_bill import ScrapedBillChecker
from checkers.senate_site_bill import SenateSiteBillChecker
from checkers.senate_site_calendar import SenateSiteCalendarChecker
from schemas.internal.spotcheck import SpotCheckRefType
from spotcheck.errors import CheckerNotRegistered

logger = logging.getLogger(__name__)


class CheckerRegistry:
    """Registrations happen before ``freeze()``; lookups afterwards take no lock."""

    def __init__(self) -> None:
        self._checkers: dict[SpotCheckRefType, BaseChecker] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def register(self, ref_type: SpotCheckRefType, checker: BaseChecker) -> "CheckerRegistry":
        with self._lock:
            if self._frozen:
                raise RuntimeError("Checker registry is frozen")
            self._checkers[SpotCheckRefType(ref_type)] = checker
        logger.debug("Registered %s for %s", type(checker).__name__, ref_type)
        return self

    def freeze(self) -> "CheckerRegistry":
        with self._lock:
            self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, ref_type: SpotCheckRefType) -> BaseChecker:
        try:
            return self._checkers[ref_type]
        except KeyError as exc:
            raise CheckerNotRegistered(ref_type) from exc

    def __contains__(self, ref_type: object) -> bool:
        return ref_type in self._checkers

    def reference_types(self) -> list[SpotCheckRefType]:
        return sorted(self._checkers, key=lambda ref_type: ref_type.value)


def default_registry() -> CheckerRegistry:
    registry = CheckerRegistry()
    for checker in (
        SenateSiteBillChecker(),
        SenateSiteCalendarChecker(),
        ScrapedBillChecker(),
        OpenlegBillChecker(),
    ):
        registry.register(checker.reference_type, checker)
    return registry.freeze()


__all__ = ["CheckerRegistry", "default_registry"]
