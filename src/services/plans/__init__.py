"""Report plans, one per reference type."""

from services.plans.openleg_bill import OpenlegBillPlan
from services.plans.scraped_bill import ScrapedBillPlan
from services.plans.senate_site import SenateSiteBillPlan, SenateSiteCalendarPlan

__all__ = [
    "OpenlegBillPlan",
    "ScrapedBillPlan",
    "SenateSiteBillPlan",
    "SenateSiteCalendarPlan",
]
