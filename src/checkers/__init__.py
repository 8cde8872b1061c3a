"""Field-level comparators, one per reference type."""

from checkers.base import BaseChecker
from checkers.registry import CheckerRegistry, default_registry

__all__ = ["BaseChecker", "CheckerRegistry", "default_registry"]
