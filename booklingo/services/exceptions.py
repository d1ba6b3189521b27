# booklingo/services/exceptions.py
"""
Error taxonomy shared by the extraction, translation and assembly stages.

Every error carries enough context (unit id, batch index, token set) to
diagnose the failing document without re-running it.
"""

from typing import Iterable, Optional


class BooklingoError(Exception):
    """Base class for all conversion errors."""

    pass


class ConfigurationError(BooklingoError, ValueError):
    """Raised when scheduler or layout options are unusable (e.g. batch_size=0)."""

    pass


class ExtractionError(BooklingoError):
    """Raised when the source container cannot be parsed into units."""

    def __init__(self, message: str, unit_id: Optional[str] = None):
        self.unit_id = unit_id
        if unit_id is not None:
            message = f"{message} (unit {unit_id})"
        super().__init__(message)


class TranslationError(BooklingoError):
    """Raised when a batch translation call fails. Fatal for the whole run."""

    def __init__(
        self,
        message: str,
        batch_index: Optional[int] = None,
        unit_ids: Iterable[str] = (),
    ):
        self.batch_index = batch_index
        self.unit_ids = tuple(unit_ids)
        if batch_index is not None:
            message = f"Batch {batch_index} failed: {message}"
        if self.unit_ids:
            message = f"{message} [units: {', '.join(sorted(set(self.unit_ids)))}]"
        super().__init__(message)


class IntegrityError(BooklingoError):
    """
    Raised when placeholder tokens do not survive translation exactly once.

    Attributes:
        missing: tokens that were recorded but are absent after translation
        unexpected: tokens present after translation that were never recorded
        duplicated: tokens that appear more than once
    """

    def __init__(
        self,
        message: str,
        missing: Iterable[str] = (),
        unexpected: Iterable[str] = (),
        duplicated: Iterable[str] = (),
    ):
        self.missing = frozenset(missing)
        self.unexpected = frozenset(unexpected)
        self.duplicated = frozenset(duplicated)
        details = []
        if self.missing:
            details.append(f"missing={sorted(self.missing)}")
        if self.unexpected:
            details.append(f"unexpected={sorted(self.unexpected)}")
        if self.duplicated:
            details.append(f"duplicated={sorted(self.duplicated)}")
        if details:
            message = f"{message}: {'; '.join(details)}"
        super().__init__(message)


class AssemblyError(BooklingoError):
    """Raised when the output object graph violates a structural invariant."""

    pass
