"""Database exceptions."""
from typing import Any, List, Tuple

class DatabaseError(Exception):
    """Base class for database errors."""
    pass

class DatabaseSchemaError(DatabaseError):
    """Raised when the schema cannot be loaded or applied."""
    pass

class BulkWriteError(DatabaseError):
    """Raised when some documents of an unordered bulk update failed.

    The remaining documents of the batch were still written.
    """
    def __init__(self, failures: List[Tuple[Any, Exception]], attempted: int):
        self.failures = failures
        self.attempted = attempted
        details = ", ".join(f"{doc_id}: {error}" for doc_id, error in failures)
        super().__init__(
            f"{len(failures)} of {attempted} document updates failed ({details})"
        )
