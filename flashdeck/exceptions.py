from typing import Optional


class DatabaseError(Exception):
    """Base exception for database-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class CardOperationError(DatabaseError):
    """Raised for errors during card operations (CRUD)."""

    pass


class ReviewOperationError(DatabaseError):
    """Indicates an error during a review-related database operation."""

    pass


class MarshallingError(DatabaseError):
    """Indicates an error during data conversion between application models
    and DB format."""

    pass


class CollectionOperationError(DatabaseError):
    """Raised for errors during collection operations."""

    pass


class CollectionNotFoundError(CollectionOperationError):
    """Raised when a specified collection is not found."""

    pass


class ConcurrentUpdateError(CardOperationError):
    """Raised when a card changed between being read and being written back.

    The store rejects the write instead of overwriting the newer state, so
    a rating event is never silently lost.
    """

    pass
