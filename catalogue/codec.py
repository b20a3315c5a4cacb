"""Flat-file line codec for users, books and transactions.

Each record is one comma-joined line with positional fields and no header.
There is no quoting or escaping: a comma inside a title, author or name
splits the field and corrupts the line. Input is guarded against that by
``catalogue.validators``; the codec itself stays a plain split/join.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from catalogue.models import Book, Transaction, User

logger = logging.getLogger(__name__)

NULL_DATE = "null"
DATE_FORMAT = "%Y-%m-%d"
DELIMITER = ","

Record = Union[User, Book, Transaction]


class RecordKind(Enum):
    USER = ("user", 4)
    BOOK = ("book", 4)
    TRANSACTION = ("transaction", 5)

    def __init__(self, label: str, field_count: int) -> None:
        self.label = label
        self.field_count = field_count


class _BadDate(ValueError):
    pass


def parse_bool(raw: str) -> bool:
    return raw.strip().lower() == "true"


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def parse_date(raw: str) -> Optional[date]:
    raw = raw.strip()
    if raw == NULL_DATE:
        return None
    try:
        parsed = datetime.strptime(raw, DATE_FORMAT).date()
    except ValueError as e:
        raise _BadDate(raw) from e
    # strptime also takes unpadded fields such as 2025-1-4
    if parsed.isoformat() != raw:
        raise _BadDate(raw)
    return parsed


def format_date(value: Optional[date]) -> str:
    return value.isoformat() if value is not None else NULL_DATE


def parse_line(kind: RecordKind, line: str) -> Optional[Record]:
    """Decode one line, or return None when it should be skipped.

    Blank lines and lines with too few fields are skipped quietly. A date
    that is neither ISO-8601 nor ``null`` also skips the line.
    """
    line = line.strip()
    if not line:
        return None
    parts = line.split(DELIMITER)
    if len(parts) < kind.field_count:
        logger.debug(f"Skipping short {kind.label} line: {line!r}")
        return None

    if kind is RecordKind.USER:
        return User(id=parts[0], name=parts[1], password=parts[2], role=parts[3])
    if kind is RecordKind.BOOK:
        return Book(id=parts[0], title=parts[1], author=parts[2], available=parse_bool(parts[3]))

    try:
        borrowed = parse_date(parts[3])
        returned = parse_date(parts[4])
    except _BadDate as e:
        logger.warning(f"Skipping transaction line with bad date {e}: {line!r}")
        return None
    return Transaction(id=parts[0], user_id=parts[1], book_id=parts[2],
                       date_borrowed=borrowed, date_returned=returned)


def format_record(record: Record) -> str:
    """Encode a record as one line, the exact inverse of ``parse_line``."""
    if isinstance(record, User):
        fields = [record.id, record.name, record.password, record.role]
    elif isinstance(record, Book):
        fields = [record.id, record.title, record.author, format_bool(record.available)]
    elif isinstance(record, Transaction):
        fields = [record.id, record.user_id, record.book_id,
                  format_date(record.date_borrowed), format_date(record.date_returned)]
    else:
        raise TypeError(f"Cannot encode {type(record).__name__}")
    return DELIMITER.join(fields)

