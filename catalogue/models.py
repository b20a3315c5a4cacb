"""Record types for the library catalogue.

Books, users and transactions are plain dataclasses. They never hold
references to each other; relationships are resolved by id through the
``Library`` repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional


class Role(Enum):
    """Access tier controlling which commands the menu exposes."""

    USER = "user"
    ADMIN = "admin"

    @classmethod
    def from_string(cls, raw: str) -> "Role":
        # Anything that is not "admin" is a regular user, as stored roles are free text.
        return cls.ADMIN if (raw or "").strip().lower() == cls.ADMIN.value else cls.USER


@dataclass
class Book:
    id: str
    title: str
    author: str
    available: bool = True

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "author": self.author, "available": self.available}


@dataclass
class User:
    id: str
    name: str
    password: str
    role: str = Role.USER.value
    borrowed_books: List[str] = field(default_factory=list)

    @property
    def capability(self) -> Role:
        return Role.from_string(self.role)

    def borrow_book(self, book_id: str) -> None:
        self.borrowed_books.append(book_id)

    def return_book(self, book_id: str) -> None:
        """Drop one occurrence of ``book_id`` from the borrowed list."""
        if book_id in self.borrowed_books:
            self.borrowed_books.remove(book_id)

    def to_dict(self) -> dict:
        # Passwords never leave the repository through display helpers.
        return {"id": self.id, "name": self.name, "role": self.role, "borrowed_books": list(self.borrowed_books)}


@dataclass
class Transaction:
    """A borrowing of one book by one user; open until ``date_returned`` is set."""

    id: str
    user_id: str
    book_id: str
    date_borrowed: Optional[date]
    date_returned: Optional[date] = None

    @property
    def is_open(self) -> bool:
        return self.date_returned is None

    @property
    def status(self) -> str:
        """Human readable status: BORROWED or RETURNED."""
        return "BORROWED" if self.is_open else "RETURNED"

    def close(self, on: date) -> None:
        self.date_returned = on

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "book_id": self.book_id,
            "date_borrowed": self.date_borrowed.isoformat() if self.date_borrowed else None,
            "date_returned": self.date_returned.isoformat() if self.date_returned else None,
            "status": self.status,
        }
