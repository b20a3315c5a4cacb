class LibraryError(Exception):
    """Base exception for library catalogue errors."""


class StorageError(LibraryError):
    """A data file could not be read or written."""


class DataFileMissing(StorageError):
    """A data file does not exist yet; callers may seed defaults and retry."""

    def __init__(self, path) -> None:
        super().__init__(f"{path} not found")
        self.path = path


class RecordNotFound(LibraryError, LookupError):
    """A book, user or transaction lookup found nothing."""


class BookNotFound(RecordNotFound):
    def __init__(self, book_id: str) -> None:
        super().__init__(f"Book {book_id} not found.")
        self.book_id = book_id


class UserNotFound(RecordNotFound):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found.")
        self.user_id = user_id


class TransactionNotFound(RecordNotFound):
    """The user's borrowed list names a book with no open transaction."""


class PreconditionFailed(LibraryError):
    """A borrow or return violates a lending rule."""


class BookUnavailable(PreconditionFailed):
    def __init__(self, book_id: str) -> None:
        super().__init__(f"Book {book_id} is currently unavailable.")
        self.book_id = book_id


class LoanLimitExceeded(PreconditionFailed):
    def __init__(self, user_id: str, limit: int) -> None:
        super().__init__(f"User {user_id} cannot borrow more than {limit} books at once.")
        self.user_id = user_id
        self.limit = limit


class NotBorrowed(PreconditionFailed):
    def __init__(self, user_id: str, book_id: str) -> None:
        super().__init__(f"User {user_id} has not borrowed book {book_id}.")
        self.user_id = user_id
        self.book_id = book_id


class DuplicateId(LibraryError, ValueError):
    """Trying to add a record whose id already exists."""


class InvalidField(LibraryError, ValueError):
    """Operator input that cannot be stored in the flat-file format."""
