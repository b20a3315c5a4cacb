import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markup import escape

from catalogue.models import Book, Transaction, User

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _availability(book: Book) -> str:
    return "Available" if book.available else "Borrowed"


def _date(value) -> str:
    return value.isoformat() if value else "null"


def print_books(books: List[Book], empty_message: str = "No books in library.") -> None:
    """Print books in the current output mode.
    - plain: 'ID | Title | Author | Available' lines
    - json: JSON array of book objects
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Status")
        for b in books:
            status = "[green]Available[/]" if b.available else "[red]Borrowed[/]"
            table.add_row(escape(b.id), escape(b.title), escape(b.author), status)
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} | {b.title} | {b.author} | {_availability(b)}")


def print_users(users: List[User]) -> None:
    mode = get_output_mode()

    if not users:
        print("No users registered.")
        return

    if mode == "json":
        print(json.dumps([u.to_dict() for u in users], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👤 Users", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Role")
        table.add_column("Borrowed")
        for u in users:
            table.add_row(escape(u.id), escape(u.name), escape(u.role), escape(", ".join(u.borrowed_books)))
        _console.print(table)
    else:
        for u in users:
            print(f"UserID: {u.id} | Name: {u.name} | Role: {u.role} | Borrowed: [{', '.join(u.borrowed_books)}]")


def print_transactions(transactions: List[Transaction]) -> None:
    mode = get_output_mode()

    if not transactions:
        print("No transactions found.")
        return

    if mode == "json":
        print(json.dumps([t.to_dict() for t in transactions], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="🔁 Transactions", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("User")
        table.add_column("Book")
        table.add_column("Borrowed")
        table.add_column("Returned")
        for t in transactions:
            table.add_row(escape(t.id), escape(t.user_id), escape(t.book_id),
                          _date(t.date_borrowed), _date(t.date_returned))
        _console.print(table)
    else:
        for t in transactions:
            print(f"{t.id} | User: {t.user_id} | Book: {t.book_id} | "
                  f"Borrowed: {_date(t.date_borrowed)} | Returned: {_date(t.date_returned)}")


def print_stats_result(stats: Dict[str, Any]) -> None:
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    labels = [
        ("total_books", "Total Books"),
        ("available_books", "Available Books"),
        ("total_users", "Users"),
        ("total_transactions", "Transactions"),
        ("open_loans", "Open Loans"),
    ]

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {stats.get(key, 0)}" for key, label in labels)
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for key, label in labels:
            print(f"{label}: {stats.get(key, 0)}")


def print_consistency_report(problems: List[str]) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps({"consistent": not problems, "problems": problems}, ensure_ascii=False))
    elif not problems:
        print("No inconsistencies found.")
    elif mode == "rich":
        body = "\n".join(f"• {escape(p)}" for p in problems)
        _console.print(Panel(body, title="⚠️ Inconsistencies", border_style="yellow"))
    else:
        print(f"{len(problems)} inconsistencies found:")
        for p in problems:
            print(f"- {p}")
