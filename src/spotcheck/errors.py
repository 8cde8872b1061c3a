"""Error kinds raised by the spot-check subsystem."""

from __future__ import annotations


class SpotcheckError(Exception):
    """Base class for all spot-check errors."""


class ReferenceDataNotFound(SpotcheckError):
    """No reference artifact exists for the requested type and window."""

    def __init__(self, ref_type: object, message: str | None = None) -> None:
        self.ref_type = ref_type
        super().__init__(message or f"No reference data found for {ref_type}")


class ReportNotFound(SpotcheckError):
    def __init__(self, report_id: object) -> None:
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


class MismatchNotFound(SpotcheckError):
    def __init__(self, mismatch_id: int) -> None:
        self.mismatch_id = mismatch_id
        super().__init__(f"Mismatch not found: {mismatch_id}")


class InvalidMismatchForReferenceType(SpotcheckError):
    """A checker emitted a mismatch type its reference type may not raise."""

    def __init__(self, mismatch_type: object, ref_type: object) -> None:
        self.mismatch_type = mismatch_type
        self.ref_type = ref_type
        super().__init__(f"Mismatch type {mismatch_type} is not checked by {ref_type}")


class CheckerNotRegistered(SpotcheckError):
    def __init__(self, ref_type: object) -> None:
        self.ref_type = ref_type
        super().__init__(f"No checker registered for {ref_type}")


class QueueEmpty(SpotcheckError):
    """The scrape queue has no entries."""


class DuplicateEnqueue(SpotcheckError):
    """An insert raced with an existing queue row for the same key."""


class ParseError(SpotcheckError):
    """A reference artifact could not be read."""


class ReferenceSourceUnavailable(SpotcheckError):
    """The upstream reference source reported an outage."""

    def __init__(self, source: str, message: str, original_error: Exception | None = None) -> None:
        self.source = source
        self.original_error = original_error
        super().__init__(f"[{source}] {message}")


class PipelineFailure(SpotcheckError):
    """A pipeline stage failed with an unhandled error."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Pipeline failed: {type(cause).__name__}: {cause}")


class PipelineCancelled(SpotcheckError):
    """The pipeline was cancelled before it completed."""


__all__ = [
    "CheckerNotRegistered",
    "DuplicateEnqueue",
    "InvalidMismatchForReferenceType",
    "MismatchNotFound",
    "ParseError",
    "PipelineCancelled",
    "PipelineFailure",
    "QueueEmpty",
    "ReferenceDataNotFound",
    "ReferenceSourceUnavailable",
    "ReportNotFound",
    "SpotcheckError",
]
