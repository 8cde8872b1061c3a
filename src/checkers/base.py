"""Canonicalization helpers shared by all comparators."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Generic, Iterable, TypeVar

from schemas.internal.spotcheck import (
    Observation,
    SpotCheckMismatch,
    SpotCheckMismatchType,
    SpotCheckRefType,
)

ContentT = TypeVar("ContentT")
ReferenceT = TypeVar("ReferenceT")

_WHITESPACE = re.compile(r"\s+")


def canonical_string(value: Any) -> str:
    """Trim, treating ``None`` as the empty string."""
    if value is None:
        return ""
    return str(value).strip()


def normalize_text(value: str | None) -> str:
    """Collapse every run of whitespace so layout differences do not count."""
    return _WHITESPACE.sub(" ", value or "").strip()


def boolean_string(value: bool, condition: str) -> str:
    return f"{condition}: {'YES' if value else 'NO'}"


def stringify_collection(
    items: Iterable[Any] | None,
    render: Callable[[Any], str] = str,
    separator: str = " ",
) -> str:
    return separator.join(render(item) for item in (items or ()))


class BaseChecker(ABC, Generic[ContentT, ReferenceT]):
    """Compares one content object against one reference record.

    Subclasses implement ``check`` by calling the ``check_*`` helpers, each
    of which canonicalizes both sides and records a mismatch on inequality.
    Checkers never perform I/O.
    """

    reference_type: ClassVar[SpotCheckRefType]

    @abstractmethod
    def check(
        self, content: ContentT, reference: ReferenceT, observation: Observation
    ) -> Observation:
        raise NotImplementedError

    def check_string(
        self,
        observation: Observation,
        content: Any,
        reference: Any,
        mismatch_type: SpotCheckMismatchType,
    ) -> None:
        observed = canonical_string(content)
        expected = canonical_string(reference)
        if observed != expected:
            observation.add_mismatch(
                SpotCheckMismatch(
                    mismatch_type=mismatch_type,
                    observed_data=observed,
                    reference_data=expected,
                )
            )

    def check_string_upper(
        self,
        observation: Observation,
        content: Any,
        reference: Any,
        mismatch_type: SpotCheckMismatchType,
    ) -> None:
        self.check_string(
            observation,
            canonical_string(content).upper(),
            canonical_string(reference).upper(),
            mismatch_type,
        )

    def check_object(
        self,
        observation: Observation,
        content: Any,
        reference: Any,
        mismatch_type: SpotCheckMismatchType,
    ) -> None:
        self.check_string(observation, _object_string(content), _object_string(reference), mismatch_type)

    def check_boolean(
        self,
        observation: Observation,
        content: bool,
        reference: bool,
        condition: str,
        mismatch_type: SpotCheckMismatchType,
    ) -> None:
        self.check_string(
            observation,
            boolean_string(content, condition),
            boolean_string(reference, condition),
            mismatch_type,
        )

    def check_collection(
        self,
        observation: Observation,
        content: Iterable[Any] | None,
        reference: Iterable[Any] | None,
        mismatch_type: SpotCheckMismatchType,
        render: Callable[[Any], str] = str,
        separator: str = " ",
    ) -> None:
        self.check_string(
            observation,
            stringify_collection(content, render, separator),
            stringify_collection(reference, render, separator),
            mismatch_type,
        )

    def check_text(
        self,
        observation: Observation,
        content: str | None,
        reference: str | None,
        mismatch_type: SpotCheckMismatchType,
        *,
        upper: bool = False,
    ) -> None:
        observed = normalize_text(content)
        expected = normalize_text(reference)
        if upper:
            observed, expected = observed.upper(), expected.upper()
        self.check_string(observation, observed, expected, mismatch_type)


def _object_string(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


__all__ = [
    "BaseChecker",
    "boolean_string",
    "canonical_string",
    "normalize_text",
    "stringify_collection",
]
