"""Schema package for external and internal contracts."""

from .requests import OpenMismatchQuery, ReportSummaryQuery

__all__ = ["OpenMismatchQuery", "ReportSummaryQuery"]
