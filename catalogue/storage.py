"""Persistent storage helpers for the library catalogue.

All state lives in three flat text files (users, books, transactions), one
record per line. Loading reads a whole file and parses it line by line;
saving rewrites the whole file in collection order. When a file does not
exist, ``seed_defaults`` can create it with the fixed starter dataset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from catalogue.codec import Record, RecordKind, format_record, parse_line
from catalogue.config import settings
from catalogue.errors import DataFileMissing, StorageError

logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    "U001,John Doe,pass123,user",
    "U002,Jane Smith,abc123,user",
    "A001,Admin,admin123,admin",
]

DEFAULT_BOOKS = [
    "B001,The Great Gatsby,F. Scott Fitzgerald,true",
    "B002,To Kill a Mockingbird,Harper Lee,true",
    "B003,1984,George Orwell,false",
]

DEFAULT_TRANSACTIONS = [
    "T001,U001,B002,2025-10-14,null",
    "T002,U002,B003,2025-10-10,2025-10-13",
]


@dataclass
class DataPaths:
    users: Path
    books: Path
    transactions: Path

    @classmethod
    def from_dir(cls, data_dir: Optional[str] = None) -> "DataPaths":
        base = Path(data_dir if data_dir is not None else settings.data_dir)
        return cls(
            users=base / settings.users_file,
            books=base / settings.books_file,
            transactions=base / settings.transactions_file,
        )

    def seed_content(self) -> List[tuple]:
        return [
            (self.users, DEFAULT_USERS),
            (self.books, DEFAULT_BOOKS),
            (self.transactions, DEFAULT_TRANSACTIONS),
        ]


def read_records(path: Path, kind: RecordKind) -> List[Record]:
    """Read every well-formed record of ``kind`` from ``path``.

    Raises DataFileMissing if the file does not exist and StorageError for
    any other I/O failure. Malformed lines are skipped by the codec.
    """
    if not path.exists():
        raise DataFileMissing(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Could not read {path}: {e}") from e

    records = []
    for line in content.splitlines():
        record = parse_line(kind, line)
        if record is not None:
            records.append(record)
    logger.info(f"Loaded {len(records)} {kind.label} records from {path}")
    return records


def write_records(path: Path, records: Iterable[Record]) -> None:
    """Rewrite ``path`` with one encoded line per record."""
    lines = [format_record(r) for r in records]
    try:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            for line in lines:
                f.write(line + "\n")
    except OSError as e:
        raise StorageError(f"Could not write {path}: {e}") from e
    logger.info(f"Saved {len(lines)} records to {path}")


def seed_defaults(paths: DataPaths) -> List[Path]:
    """Write the starter dataset for every data file that is absent.

    Existing files are left untouched. Returns the files that were created.
    """
    created = []
    for path, lines in paths.seed_content():
        if path.exists():
            continue
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="\n") as f:
                f.write("\n".join(lines) + "\n")
        except OSError as e:
            raise StorageError(f"Could not create default file {path}: {e}") from e
        logger.info(f"Created default data file {path}")
        created.append(path)
    return created
