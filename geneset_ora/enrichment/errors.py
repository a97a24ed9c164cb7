"""
Error and warning types for enrichment analysis.

Fatal input problems are raised as subclasses of InputError, which is also
a ValueError so callers catching the usual validation error keep working.
Non-fatal conditions are recorded as small immutable warning records and
returned alongside the results.

Classes:
    AnalysisError: Base class of all enrichment errors
    InputError: Fatal, non-retryable input problem
    EmptyQuerySet, EmptyGeneSetCollection, EmptyUniverse,
    NamespaceMismatch, InvalidContingency: Concrete input errors
    AnalysisWarning: Base class of warning records
    DroppedGenesNotInUniverse, ZeroOverlapTermsSkipped: Warning records
"""

from dataclasses import dataclass
from typing import Tuple


class AnalysisError(Exception):
    """Base class for errors raised by the enrichment engine."""


class InputError(AnalysisError, ValueError):
    """Invalid input; the call is aborted and no result table is returned."""


class EmptyQuerySet(InputError):
    """No genes of interest remain after restricting to the universe."""


class EmptyGeneSetCollection(InputError):
    """The gene set collection contains no terms."""


class EmptyUniverse(InputError):
    """The background universe is empty."""


class NamespaceMismatch(InputError):
    """Inputs use incompatible gene identifier types."""

    def __init__(self, expected: str, found: str, context: str = ''):
        self.expected = expected
        self.found = found
        message = f"Identifier type mismatch: expected '{expected}', got '{found}'"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)


class InvalidContingency(InputError):
    """A contingency table cell came out negative."""


@dataclass(frozen=True)
class AnalysisWarning:
    """Base class for non-fatal conditions reported with a result table."""

    @property
    def message(self) -> str:
        return self.__class__.__name__


@dataclass(frozen=True)
class DroppedGenesNotInUniverse(AnalysisWarning):
    """Genes of interest that were excluded because the universe lacks them."""
    count: int
    genes: Tuple[str, ...]

    @property
    def message(self) -> str:
        preview = ', '.join(self.genes[:10])
        if self.count > 10:
            preview += ', ...'
        return f"{self.count} genes of interest not in universe were dropped: {preview}"


@dataclass(frozen=True)
class ZeroOverlapTermsSkipped(AnalysisWarning):
    """Terms left untested because none of their genes are in the universe."""
    count: int
    term_ids: Tuple[str, ...]

    @property
    def message(self) -> str:
        return f"{self.count} terms share no genes with the universe and were not tested"
