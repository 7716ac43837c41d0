"""Exceptions raised by the transaction enrichment pipeline."""
from typing import Optional

class ProcessorError(Exception):
    """Base class for pipeline errors."""
    pass

class JobValidationError(ProcessorError):
    """Raised when a job message is missing a required field."""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)

class NotFoundError(ProcessorError):
    """Raised when none of the affected addresses belongs to a known wallet."""
    pass

class InvariantError(ProcessorError):
    """Raised when stored documents break an invariant the pipeline relies on.

    These point at corrupt upstream data and are not worth retrying.
    """
    pass

class ValuationError(ProcessorError):
    """Raised when a transaction's base volume could not be computed."""
    def __init__(self, transaction_id: str, currency: str, cause: Exception):
        self.transaction_id = transaction_id
        self.currency = currency
        super().__init__(
            f"Valuation of transaction {transaction_id} in {currency} failed: {cause}"
        )
