import logging
import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional, TypeVar

from catalogue import storage
from catalogue.codec import RecordKind
from catalogue.config import settings
from catalogue.errors import (
    BookNotFound,
    BookUnavailable,
    DataFileMissing,
    DuplicateId,
    LoanLimitExceeded,
    NotBorrowed,
    TransactionNotFound,
    UserNotFound,
)
from catalogue.models import Book, Transaction, User
from catalogue.storage import DataPaths
from catalogue.validators import FieldValidator

logger = logging.getLogger(__name__)

R = TypeVar("R")

TRANSACTION_PREFIX = "T"


class Library:
    """Manages books, users and transactions and their flat-file persistence."""

    def __init__(self, data_dir: Optional[str] = None, loan_limit: Optional[int] = None) -> None:
        self.paths = DataPaths.from_dir(data_dir)
        self.loan_limit = loan_limit if loan_limit is not None else settings.loan_limit
        self.books: List[Book] = []
        self.users: List[User] = []
        self.transactions: List[Transaction] = []

    @classmethod
    def open(cls, data_dir: Optional[str] = None, loan_limit: Optional[int] = None) -> "Library":
        """Load a library, seeding absent data files and retrying once."""
        lib = cls(data_dir, loan_limit=loan_limit)
        try:
            lib.load_all()
        except DataFileMissing as e:
            logger.warning(f"{e}; creating default data files")
            storage.seed_defaults(lib.paths)
            lib.load_all()
        return lib

    # ------------------------- Persistence ------------------------- #
    def load_all(self) -> None:
        """Replace the in-memory collections with the contents of the data files.

        Users are read first: loading transactions rebuilds every user's
        borrowed list from the transactions that are still open.
        """
        self.users = storage.read_records(self.paths.users, RecordKind.USER)
        self.books = storage.read_records(self.paths.books, RecordKind.BOOK)
        self.transactions = storage.read_records(self.paths.transactions, RecordKind.TRANSACTION)

        for t in self.transactions:
            if not t.is_open:
                continue
            user = self.find_user(t.user_id)
            if user and t.book_id not in user.borrowed_books:
                user.borrowed_books.append(t.book_id)

    def save_all(self) -> None:
        storage.write_records(self.paths.users, self.users)
        storage.write_records(self.paths.books, self.books)
        storage.write_records(self.paths.transactions, self.transactions)

    # ------------------------- Lookups ------------------------- #
    def find_book(self, book_id: str) -> Optional[Book]:
        for book in self.books:
            if book.id == book_id:
                return book
        return None

    def find_user(self, user_id: str) -> Optional[User]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for t in self.transactions:
            if t.id == transaction_id:
                return t
        return None

    def list_books(self) -> List[Book]:
        return list(self.books)

    def list_users(self) -> List[User]:
        return list(self.users)

    def search_books(self, keyword: str) -> List[Book]:
        """Case-insensitive substring search over title or author."""
        key = (keyword or "").strip().lower()
        return [b for b in self.books if key in b.title.lower() or key in b.author.lower()]

    def transactions_for_user(self, user_id: str) -> List[Transaction]:
        return [t for t in self.transactions if t.user_id == user_id]

    def transactions_for_book(self, book_id: str) -> List[Transaction]:
        return [t for t in self.transactions if t.book_id == book_id]

    def authenticate(self, name: str, password: str) -> Optional[User]:
        """Return the first user whose name matches (any case) and password matches exactly."""
        name = (name or "").lower()
        for user in self.users:
            if user.name.lower() == name and user.password == password:
                return user
        return None

    # ------------------------- Borrow / return ------------------------- #
    def borrow_book(self, user_id: str, book_id: str) -> Transaction:
        user = self._require_user(user_id)
        book = self.find_book(book_id)
        if book is None:
            raise BookNotFound(book_id)
        if not book.available:
            raise BookUnavailable(book_id)
        if len(user.borrowed_books) >= self.loan_limit:
            raise LoanLimitExceeded(user_id, self.loan_limit)

        book.available = False
        user.borrow_book(book_id)
        transaction = Transaction(
            id=self.next_transaction_id(),
            user_id=user_id,
            book_id=book_id,
            date_borrowed=date.today(),
        )
        self.transactions.append(transaction)
        logger.info(f"{user_id} borrowed {book_id} ({transaction.id})")
        return transaction

    def return_book(self, user_id: str, book_id: str) -> Transaction:
        user = self._require_user(user_id)
        if book_id not in user.borrowed_books:
            raise NotBorrowed(user_id, book_id)

        # With duplicate open loans the first one in file order is closed.
        transaction = next(
            (t for t in self.transactions if t.user_id == user_id and t.book_id == book_id and t.is_open),
            None,
        )
        if transaction is None:
            raise TransactionNotFound(f"No open transaction for user {user_id} and book {book_id}.")

        transaction.close(date.today())
        book = self.find_book(book_id)
        if book is not None:
            book.available = True
        user.return_book(book_id)
        logger.info(f"{user_id} returned {book_id} ({transaction.id})")
        return transaction

    def next_transaction_id(self) -> str:
        """Next id after the highest numeric suffix in use, formatted as T%03d."""
        highest = 0
        for t in self.transactions:
            digits = re.sub(r"[^0-9]", "", t.id)
            try:
                number = int(digits)
            except ValueError:
                logger.warning(f"Transaction id {t.id!r} has no numeric part; counting it as 0")
                continue
            highest = max(highest, number)
        return f"{TRANSACTION_PREFIX}{highest + 1:03d}"

    # ------------------------- Users ------------------------- #
    def add_user(self, user_id: str, name: str, password: str, role: str) -> User:
        user = User(
            id=FieldValidator.validate_id(user_id, "User ID"),
            name=FieldValidator.validate_field(name, "Name"),
            password=FieldValidator.validate_field(password, "Password"),
            role=FieldValidator.validate_role(role),
        )
        return self._add_record(self.users, user, self.find_user)

    def update_user(self, user_id: str, *, name: str = "", password: str = "", role: str = "") -> Optional[User]:
        """Patch a user; empty values keep the current field. Returns None if not found."""
        user = self.find_user(user_id)
        if not user:
            return None
        return self._patch_record(
            user,
            name=FieldValidator.validate_field(name, "Name"),
            password=FieldValidator.validate_field(password, "Password"),
            role=FieldValidator.validate_role(role) if role and role.strip() else "",
        )

    def remove_user(self, user_id: str) -> bool:
        # Open transactions of the user are left in place.
        return self._remove_record(self.users, self.find_user(user_id))

    # ------------------------- Books ------------------------- #
    def add_book(self, book_id: str, title: str, author: str) -> Book:
        book = Book(
            id=FieldValidator.validate_id(book_id, "Book ID"),
            title=FieldValidator.validate_field(title, "Title"),
            author=FieldValidator.validate_field(author, "Author"),
            available=True,
        )
        return self._add_record(self.books, book, self.find_book)

    def update_book(self, book_id: str, *, title: str = "", author: str = "", available: str = "") -> Optional[Book]:
        """Patch a book; empty values keep the current field. Returns None if not found."""
        book = self.find_book(book_id)
        if not book:
            return None
        flag = FieldValidator.validate_flag(available) == "true" if available and available.strip() else None
        return self._patch_record(
            book,
            title=FieldValidator.validate_field(title, "Title"),
            author=FieldValidator.validate_field(author, "Author"),
            available=flag,
        )

    def remove_book(self, book_id: str) -> bool:
        # No check for outstanding loans: transactions keep pointing at the id.
        return self._remove_record(self.books, self.find_book(book_id))

    # ------------------------- Reports ------------------------- #
    def get_statistics(self) -> Dict[str, Any]:
        return {
            "total_books": len(self.books),
            "available_books": sum(1 for b in self.books if b.available),
            "total_users": len(self.users),
            "total_transactions": len(self.transactions),
            "open_loans": sum(1 for t in self.transactions if t.is_open),
        }

    def check_consistency(self) -> List[str]:
        """List places where book flags, borrowed lists and open transactions disagree.

        Nothing is repaired; the report only describes the drift.
        """
        problems: List[str] = []
        open_loans = [t for t in self.transactions if t.is_open]
        open_books = {t.book_id for t in open_loans}

        for book in self.books:
            if not book.available and book.id not in open_books:
                problems.append(f"Book {book.id} is marked unavailable but has no open transaction.")
            elif book.available and book.id in open_books:
                problems.append(f"Book {book.id} is marked available but has an open transaction.")

        for t in open_loans:
            if self.find_book(t.book_id) is None:
                problems.append(f"Transaction {t.id} is open for missing book {t.book_id}.")
            if self.find_user(t.user_id) is None:
                problems.append(f"Transaction {t.id} is open for missing user {t.user_id}.")

        for user in self.users:
            expected = {t.book_id for t in open_loans if t.user_id == user.id}
            if set(user.borrowed_books) != expected:
                problems.append(
                    f"User {user.id} lists {sorted(set(user.borrowed_books))} "
                    f"but has open transactions for {sorted(expected)}."
                )
            if len(user.borrowed_books) > self.loan_limit:
                problems.append(f"User {user.id} holds {len(user.borrowed_books)} loans (limit {self.loan_limit}).")
        return problems

    # ------------------------- Utilities ------------------------- #
    def _require_user(self, user_id: str) -> User:
        user = self.find_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user

    @staticmethod
    def _add_record(collection: List[R], record: R, finder: Callable[[str], Optional[R]]) -> R:
        if finder(record.id) is not None:
            raise DuplicateId(f"ID {record.id} already exists.")
        collection.append(record)
        return record

    @staticmethod
    def _patch_record(record: R, **fields: Any) -> R:
        for name, value in fields.items():
            if value is None or value == "":
                continue
            setattr(record, name, value)
        return record

    @staticmethod
    def _remove_record(collection: List[R], record: Optional[R]) -> bool:
        if record is None:
            return False
        collection.remove(record)
        return True
