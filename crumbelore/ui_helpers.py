import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "CRUMBELORE_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_books(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: 'id - Title by Author [available/total]' lines, or 'No books found.'
    - json: JSON array of wire-format books
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books found.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="white")
        table.add_column("Available", justify="right")
        for b in books:
            style = "green" if b.available_copies > 0 else "red"
            table.add_row(b.id, b.title, b.author, b.genre,
                          f"[{style}]{b.available_copies}/{b.total_copies}[/]")
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author} [{b.available_copies}/{b.total_copies}]")

def print_book(book: Any) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
        return
    lines = [
        f"Title: {book.title}",
        f"Author: {book.author}",
        f"Genre: {book.genre}",
        f"ISBN: {book.isbn}",
        f"Year: {book.year}",
        f"Pages: {book.pages}",
        f"Available: {book.available_copies}/{book.total_copies}",
        f"Tags: {', '.join(book.tags)}",
    ]
    if mode == "rich":
        _console.print(Panel.fit("\n".join(lines), title=f"📖 {book.id}", border_style="cyan"))
    else:
        print("\n".join(lines))

def print_reservations(reservations: List[Any]) -> None:
    mode = get_output_mode()

    if not reservations:
        print("No reservations.")
        return

    if mode == "json":
        print(json.dumps([r.to_dict() for r in reservations], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="🔖 Reservations", header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Book")
        table.add_column("Reserved")
        table.add_column("Pick up by")
        table.add_column("Status")
        for r in reservations:
            status = "[green]active[/]" if r.is_active else "[dim]cancelled[/]"
            table.add_row(r.id, r.book_title, r.reservation_date[:10], r.expiry_date[:10], status)
        _console.print(table)
    else:
        for r in reservations:
            print(f"{r.id} - {r.book_title} ({r.status.value}) pick up by {r.expiry_date[:10]}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print catalog statistics in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
        return

    lines = [
        f"Total Books: {stats.get('totalBooks', 0)}",
        f"Total Copies: {stats.get('totalCopies', 0)}",
        f"Available Copies: {stats.get('availableCopies', 0)}",
        f"Active Reservations: {stats.get('activeReservations', 0)}",
    ]
    genres = stats.get("genreDistribution") or {}
    if mode == "rich":
        body = "\n".join(f"[bold]{line.split(':')[0]}:[/]{line.split(':', 1)[1]}" for line in lines)
        if genres:
            body += "\n" + "\n".join(f"  {g or '(none)'}: {n}" for g, n in genres.items())
        _console.print(Panel.fit(body, title="📊 Stats", border_style="blue"))
    else:
        for line in lines:
            print(line)
        for genre, count in genres.items():
            print(f"  {genre or '(none)'}: {count}")
