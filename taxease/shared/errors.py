"""Domain exceptions.

Classification failures are not exceptions: providers report them as
unsuccessful results and the pipeline records them on the invoice.
"""


class TaxEaseError(Exception):
    """Base class for all analyzer errors."""


class InvalidRuleError(TaxEaseError):
    """A vendor rule is missing its pattern or has an unknown category."""


class DuplicateRuleError(TaxEaseError):
    """A vendor rule with the same pattern (case-insensitive) already exists."""


class RuleFileError(TaxEaseError):
    """A rule file could not be parsed into a list of rule entries."""

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason


class RecordNotFoundError(TaxEaseError):
    """No invoice record exists with the given id."""


class InvalidTransitionError(TaxEaseError):
    """A status change would move a record backward or out of a terminal state."""


class NothingToExportError(TaxEaseError):
    """The export was requested before any record completed classification."""
