import logging
from typing import Callable, List, Optional, Tuple

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from catalogue import storage
from catalogue.config import settings
from catalogue.errors import LibraryError, StorageError
from catalogue.library import Library
from catalogue.models import Role, User
from catalogue.ui_helpers import (
    print_books,
    print_consistency_report,
    print_stats_result,
    print_transactions,
    print_users,
    set_output_mode,
)

console = Console()
logger = logging.getLogger("catalogue")

Handler = Callable[[Library, User], None]
# (label, icon, handler); a None handler leaves the menu
MenuEntry = Tuple[str, str, Optional[Handler]]

app = typer.Typer(help="Library catalogue manager")


@app.callback(invoke_without_command=True)
def _global_options(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    data_dir: Optional[str] = typer.Option(
        None,
        "--data-dir",
        "-d",
        help="Directory holding users.txt, books.txt and transactions.txt",
    ),
):
    """Global options. Without a command, starts the interactive session."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(levelname)s: %(message)s",
    )
    if output:
        set_output_mode(output)
    if data_dir:
        settings.data_dir = data_dir
    if ctx.invoked_subcommand is None:
        run_session()


def _open_library() -> Library:
    """Load the data files, seeding any that are missing. Exits on I/O failure."""
    try:
        return Library.open(settings.data_dir)
    except StorageError as e:
        console.print(f"[bold red]Failed to load data files:[/] {escape(str(e))}")
        raise typer.Exit(code=1)


# ------------------------- Read-only commands ------------------------- #
@app.command("books")
def cli_books():
    """List every book in the catalogue."""
    print_books(_open_library().list_books())


@app.command("search")
def cli_search(keyword: str = typer.Argument(..., help="Text to look for in titles and authors")):
    """Search books by title or author (case-insensitive)."""
    print_books(_open_library().search_books(keyword), empty_message="No books found for the keyword.")


@app.command("users")
def cli_users():
    """List registered users and what they have borrowed."""
    print_users(_open_library().list_users())


@app.command("transactions")
def cli_transactions(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Only this user's transactions"),
    book: Optional[str] = typer.Option(None, "--book", "-b", help="Only this book's transactions"),
):
    """List borrow/return transactions."""
    lib = _open_library()
    transactions = lib.transactions_for_user(user) if user else lib.transactions
    if book:
        by_book = lib.transactions_for_book(book)
        transactions = [t for t in transactions if t in by_book]
    print_transactions(transactions)


@app.command("stats")
def cli_stats():
    """Show catalogue statistics."""
    print_stats_result(_open_library().get_statistics())


@app.command("check")
def cli_check():
    """Report drift between book flags, borrowed lists and open transactions."""
    problems = _open_library().check_consistency()
    print_consistency_report(problems)
    if problems:
        raise typer.Exit(code=1)


@app.command("init")
def cli_init():
    """Create default data files for any that are missing."""
    try:
        created = storage.seed_defaults(storage.DataPaths.from_dir(settings.data_dir))
    except StorageError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    if not created:
        print("All data files already exist.")
        return
    for path in created:
        print(f"Created {path}")


@app.command("menu")
def cli_menu():
    """Log in and start the interactive menu."""
    run_session()


# ------------------------- Session ------------------------- #
def login(lib: Library) -> Optional[User]:
    console.print("Please log in to continue.")
    attempts = settings.login_attempts
    while attempts > 0:
        username = Prompt.ask("Username")
        password = Prompt.ask("Password", password=settings.hide_password)
        user = lib.authenticate(username, password)
        if user:
            console.print(f"[green]Login successful! Welcome, {escape(user.name)}.[/]")
            return user
        attempts -= 1
        console.print(f"[yellow]Invalid username or password.[/] (Attempts left: {attempts})")
    return None


def run_session() -> None:
    console.print(Panel.fit(f"[bold]Welcome to the {escape(settings.app_name)}[/]", border_style="cyan"))
    lib = _open_library()

    try:
        user = login(lib)
    except (EOFError, KeyboardInterrupt):
        console.print()
        user = None
    if user is None:
        console.print("[bold red]Exceeded login attempts. Exiting.[/]")
        raise typer.Exit(code=1)

    try:
        run_menu(settings.app_name, build_main_menu(user.capability), lib, user)
    except (EOFError, KeyboardInterrupt):
        console.print()

    try:
        lib.save_all()
    except StorageError as e:
        console.print(f"[bold red]Error saving files:[/] {escape(str(e))}")
        raise typer.Exit(code=1)
    console.print("[green]All changes saved. Goodbye![/]")


def render_menu(title: str, entries: List[MenuEntry]) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="bold cyan", width=4)
    table.add_column(justify="left", style="white")
    for key, (label, icon, _) in enumerate(entries, 1):
        table.add_row(f"[reverse]{key}[/]", f"{icon} {label}")

    console.print(Panel(table, title=escape(title), border_style="cyan", box=box.HEAVY, padding=(1, 2)))


def run_menu(title: str, entries: List[MenuEntry], lib: Library, user: User) -> None:
    """Prompt for a numbered choice until the exit entry is picked.

    Library errors raised by a handler are reported and the loop carries on.
    """
    while True:
        render_menu(title, entries)
        choice = Prompt.ask("Enter choice")
        if not choice.isdigit() or not 1 <= int(choice) <= len(entries):
            console.print("[yellow]Invalid choice.[/]")
            continue

        label, _, handler = entries[int(choice) - 1]
        if handler is None:
            return
        try:
            handler(lib, user)
        except LibraryError as e:
            logger.debug(f"{label} failed: {e}")
            console.print(f"[bold red]Error:[/] {escape(str(e))}")


# ------------------------- Book commands ------------------------- #
def view_all_books(lib: Library, user: User) -> None:
    print_books(lib.list_books())


def borrow_book(lib: Library, user: User) -> None:
    book_id = Prompt.ask("Enter Book ID to borrow")
    transaction = lib.borrow_book(user.id, book_id)
    console.print(f"[green]Book borrowed successfully! Transaction ID: {transaction.id}[/]")


def return_book(lib: Library, user: User) -> None:
    book_id = Prompt.ask("Enter Book ID to return")
    transaction = lib.return_book(user.id, book_id)
    console.print(f"[green]Book returned successfully. Transaction updated: {transaction.id}[/]")


def search_books(lib: Library, user: User) -> None:
    keyword = Prompt.ask("Enter search keyword (title or author)")
    print_books(lib.search_books(keyword), empty_message="No books found for the keyword.")


# ------------------------- Users management ------------------------- #
def add_user(lib: Library, user: User) -> None:
    user_id = Prompt.ask("Enter new User ID")
    if lib.find_user(user_id):
        console.print("[yellow]User ID already exists.[/]")
        return
    name = Prompt.ask("Enter Name")
    password = Prompt.ask("Enter Password")
    role = Prompt.ask("Enter Role (user/admin)")
    lib.add_user(user_id, name, password, role)
    console.print("[green]User added.[/]")


def update_user(lib: Library, user: User) -> None:
    user_id = Prompt.ask("Enter User ID to update")
    if not lib.find_user(user_id):
        console.print("[yellow]User not found.[/]")
        return
    name = Prompt.ask("Enter new name (leave blank to keep)")
    password = Prompt.ask("Enter new password (leave blank to keep)")
    role = Prompt.ask("Enter new role (user/admin) (leave blank to keep)")
    lib.update_user(user_id, name=name, password=password, role=role)
    console.print("[green]User updated.[/]")


def delete_user(lib: Library, user: User) -> None:
    user_id = Prompt.ask("Enter User ID to delete")
    target = lib.find_user(user_id)
    if not target:
        console.print("[yellow]User not found.[/]")
        return
    if not Confirm.ask(f"Delete user {escape(target.name)}?", default=False):
        console.print("[blue]Deletion cancelled.[/]")
        return
    lib.remove_user(user_id)
    console.print("[green]User deleted.[/]")


def display_users(lib: Library, user: User) -> None:
    print_users(lib.list_users())


# ------------------------- Catalogue management ------------------------- #
def add_book(lib: Library, user: User) -> None:
    book_id = Prompt.ask("Enter new Book ID")
    if lib.find_book(book_id):
        console.print("[yellow]Book ID already exists.[/]")
        return
    title = Prompt.ask("Enter Title")
    author = Prompt.ask("Enter Author")
    lib.add_book(book_id, title, author)
    console.print("[green]Book added.[/]")


def update_book(lib: Library, user: User) -> None:
    book_id = Prompt.ask("Enter Book ID to update")
    if not lib.find_book(book_id):
        console.print("[yellow]Book not found.[/]")
        return
    title = Prompt.ask("Enter new title (leave blank to keep)")
    author = Prompt.ask("Enter new author (leave blank to keep)")
    available = Prompt.ask("Set availability (true/false) (leave blank to keep)")
    lib.update_book(book_id, title=title, author=author, available=available)
    console.print("[green]Book updated.[/]")


def delete_book(lib: Library, user: User) -> None:
    book_id = Prompt.ask("Enter Book ID to delete")
    book = lib.find_book(book_id)
    if not book:
        console.print("[yellow]Book not found.[/]")
        return
    if not Confirm.ask(f"Delete {escape(book.title)}?", default=False):
        console.print("[blue]Deletion cancelled.[/]")
        return
    lib.remove_book(book_id)
    console.print("[green]Book deleted.[/]")


# ------------------------- Transactions ------------------------- #
def view_all_transactions(lib: Library, user: User) -> None:
    print_transactions(lib.transactions)


def view_transactions_by_user(lib: Library, user: User) -> None:
    print_transactions(lib.transactions_for_user(Prompt.ask("Enter User ID")))


def view_transactions_by_book(lib: Library, user: User) -> None:
    print_transactions(lib.transactions_for_book(Prompt.ask("Enter Book ID")))


def check_consistency(lib: Library, user: User) -> None:
    print_consistency_report(lib.check_consistency())


USERS_MENU: List[MenuEntry] = [
    ("Add User", "➕", add_user),
    ("Update User", "✏️", update_user),
    ("Delete User", "🗑️", delete_user),
    ("Display Users", "👥", display_users),
    ("Back", "↩️", None),
]

CATALOGUE_MENU: List[MenuEntry] = [
    ("Add Book", "➕", add_book),
    ("Update Book", "✏️", update_book),
    ("Delete Book", "🗑️", delete_book),
    ("Display Books", "📚", view_all_books),
    ("Back", "↩️", None),
]

TRANSACTIONS_MENU: List[MenuEntry] = [
    ("View All Transactions", "📜", view_all_transactions),
    ("View Transactions By User", "👤", view_transactions_by_user),
    ("View Transactions By Book", "📖", view_transactions_by_book),
    ("Check Consistency", "🩺", check_consistency),
    ("Back", "↩️", None),
]


def users_management(lib: Library, user: User) -> None:
    run_menu("Users Management", USERS_MENU, lib, user)


def catalogue_management(lib: Library, user: User) -> None:
    run_menu("Catalogue Management", CATALOGUE_MENU, lib, user)


def transactions_menu(lib: Library, user: User) -> None:
    run_menu("Transactions", TRANSACTIONS_MENU, lib, user)


BASE_COMMANDS: List[MenuEntry] = [
    ("View All Books", "📚", view_all_books),
    ("Borrow Book", "📥", borrow_book),
    ("Return Book", "📤", return_book),
    ("Search Books (by title/author)", "🔎", search_books),
]

ADMIN_COMMANDS: List[MenuEntry] = [
    ("Users Management", "👤", users_management),
    ("Catalogue Management", "🗂️", catalogue_management),
    ("Transactions", "🔁", transactions_menu),
]


def build_main_menu(role: Role) -> List[MenuEntry]:
    """Main menu for a role; admins get the management commands before Exit."""
    entries = list(BASE_COMMANDS)
    if role is Role.ADMIN:
        entries.extend(ADMIN_COMMANDS)
    entries.append(("Exit", "🚪", None))
    return entries


if __name__ == "__main__":
    app()
