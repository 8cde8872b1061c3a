"""Internal schema definitions."""

from .content import (  # noqa: F401
    Bill,
    BillAction,
    BillAmendment,
    BillVote,
    CalendarEntry,
    CalendarEntryList,
)
from .keys import (  # noqa: F401
    BaseBillId,
    BillId,
    CalendarEntryListId,
    ContentKey,
    key_from_map,
)
from .references import (  # noqa: F401
    BillScrapeReference,
    BillScrapeVote,
    DumpFragment,
    SenateSiteBill,
    SenateSiteCalendar,
    SenateSiteDump,
)
from .spotcheck import (  # noqa: F401
    MismatchState,
    MismatchStatus,
    Observation,
    PriorMismatch,
    ReferenceId,
    Report,
    ReportId,
    SpotCheckContentType,
    SpotCheckDataSource,
    SpotCheckMismatch,
    SpotCheckMismatchIgnore,
    SpotCheckMismatchType,
    SpotCheckRefType,
)

__all__ = [
    "BaseBillId",
    "Bill",
    "BillAction",
    "BillAmendment",
    "BillId",
    "BillScrapeReference",
    "BillScrapeVote",
    "BillVote",
    "CalendarEntry",
    "CalendarEntryList",
    "CalendarEntryListId",
    "ContentKey",
    "DumpFragment",
    "MismatchState",
    "MismatchStatus",
    "Observation",
    "PriorMismatch",
    "ReferenceId",
    "Report",
    "ReportId",
    "SenateSiteBill",
    "SenateSiteCalendar",
    "SenateSiteDump",
    "SpotCheckContentType",
    "SpotCheckDataSource",
    "SpotCheckMismatch",
    "SpotCheckMismatchIgnore",
    "SpotCheckMismatchType",
    "SpotCheckRefType",
    "key_from_map",
]
