import dataclasses
import logging
from typing import List, Optional

import typer
import uvicorn

from .book import BookUpdate
from .config import settings
from .context import ClientContext, open_context
from .database import RecordStore
from .errors import StoreInitError, ValidationError
from .ui_helpers import print_book, print_books, print_reservations, print_stats_result, set_output_mode

app = typer.Typer(help="Crumbelore bookstore & cafe: catalog, reservations and the API server.")


class CliState:
    client_dir: Optional[str] = None
    offline: bool = False


state = CliState()


def _open():
    config = settings
    if state.client_dir:
        config = dataclasses.replace(settings, client_dir=state.client_dir)
    return open_context(config, offline=state.offline)


def _require_login(ctx: ClientContext) -> Optional[dict]:
    user = ctx.auth.get_current_user()
    if not user:
        print("Please log in first: crumbelore login EMAIL PASSWORD")
    return user


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Output format: plain | json | rich (default: plain)",
    ),
    client_dir: Optional[str] = typer.Option(
        None, "--client-dir", help="Directory holding the local catalog and session",
    ),
    offline: bool = typer.Option(False, "--offline", help="Do not contact the server"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
):
    """Global options for every command."""
    if output:
        set_output_mode(output)
    state.client_dir = client_dir
    state.offline = offline
    level = settings.log_level if verbose else "WARNING"
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# ------------------------- Server ------------------------- #
@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, help="Bind address"),
    port: Optional[int] = typer.Option(None, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Start the API server with uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    try:
        RecordStore(settings.data_dir).initialize()
    except StoreInitError as e:
        print(f"Fatal: {e}")
        raise typer.Exit(code=1)
    print(f"Server running on http://{host}:{port}")
    print(f"Data directory: {settings.data_dir}")
    uvicorn.run("crumbelore.api:app", host=host, port=port, reload=reload,
                log_level=settings.log_level.lower())


# ------------------------- Session ------------------------- #
@app.command("login")
def cli_login(
    email: str,
    password: str,
    user_type: str = typer.Option("customer", "--type", "-t", help="customer | admin"),
):
    """Sign in (demo: any well-formed email/password pair is accepted)."""
    with _open() as ctx:
        result = ctx.auth.login(email, password, user_type)
        if result.success:
            mode = "offline demo" if ctx.auth.is_offline_mode else "server"
            print(f"Login successful! Welcome, {result.data['user']['name']} ({mode} session)")
        else:
            print(f"Login failed: {result.error}")


@app.command("logout")
def cli_logout():
    """End the current session."""
    with _open() as ctx:
        ctx.auth.logout()
        print("Logged out.")


@app.command("whoami")
def cli_whoami():
    """Show the logged-in user."""
    with _open() as ctx:
        user = ctx.auth.get_current_user()
        if not user:
            print("Not logged in.")
            return
        print(f"{user.get('name')} <{user.get('email')}> ({ctx.auth.user_type})")


# ------------------------- Catalog ------------------------- #
@app.command("list")
def cli_list(genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Filter by genre")):
    """List the catalog."""
    with _open() as ctx:
        print_books(ctx.catalog.search("", genre))


@app.command("search")
def cli_search(
    query: str = typer.Argument(..., help="Matches title, author, genre or tags"),
    genre: str = typer.Option("all", "--genre", "-g", help="Genre filter ('all' for none)"),
):
    """Search the catalog."""
    with _open() as ctx:
        print_books(ctx.catalog.search(query, genre))


@app.command("show")
def cli_show(book_id: str):
    """Show one book."""
    with _open() as ctx:
        book = ctx.catalog.get_by_id(book_id)
        if not book:
            print(f"Book {book_id} not found.")
            return
        print_book(book)


@app.command("add")
def cli_add(
    title: str,
    author: str,
    genre: str = typer.Option("", "--genre", "-g"),
    copies: int = typer.Option(1, "--copies", "-c"),
    isbn: str = typer.Option("", "--isbn"),
    pages: int = typer.Option(0, "--pages"),
    year: Optional[int] = typer.Option(None, "--year"),
    description: str = typer.Option("", "--description", "-d"),
    tags: Optional[List[str]] = typer.Option(None, "--tag", help="Repeat for several tags"),
):
    """Add a book to the catalog."""
    with _open() as ctx:
        try:
            book = ctx.catalog.add({
                "title": title, "author": author, "genre": genre, "copies": copies, "isbn": isbn,
                "pages": pages, "year": year, "description": description, "tags": tags or [],
            })
        except ValidationError as e:
            print(f"Error: {e.message}")
            return
        print(f"Successfully added: {book.title} by {book.author} (id: {book.id})")


@app.command("update")
def cli_update(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title"),
    author: Optional[str] = typer.Option(None, "--author"),
    genre: Optional[str] = typer.Option(None, "--genre"),
    total_copies: Optional[int] = typer.Option(None, "--total-copies"),
    available_copies: Optional[int] = typer.Option(None, "--available-copies"),
    description: Optional[str] = typer.Option(None, "--description"),
):
    """Update fields of a book."""
    patch = BookUpdate(title=title, author=author, genre=genre, total_copies=total_copies,
                       available_copies=available_copies, description=description)
    if not patch.changes():
        print("Nothing to update.")
        return
    with _open() as ctx:
        book = ctx.catalog.update(book_id, patch)
        if not book:
            print(f"Book {book_id} not found.")
            return
        print(f"Updated {book.id}.")


@app.command("remove")
def cli_remove(book_id: str):
    """Delete a book and cancel its active reservations."""
    with _open() as ctx:
        if ctx.catalog.delete(book_id):
            print(f"Book {book_id} has been removed.")
        else:
            print(f"Book {book_id} not found.")


@app.command("stats")
def cli_stats():
    """Catalog statistics."""
    with _open() as ctx:
        print_stats_result(ctx.catalog.stats())


# ------------------------- Reservations ------------------------- #
@app.command("reserve")
def cli_reserve(book_id: str, notes: str = typer.Option("", "--notes", "-n")):
    """Reserve a copy for seven days."""
    with _open() as ctx:
        result = ctx.reservations.reserve(book_id, notes)
        if result.success:
            print(f"Reserved! Reservation {result.data['reservationId']}, "
                  f"pick up by {result.data['expiryDate'][:10]}")
        else:
            print(f"Reservation failed: {result.error}")


@app.command("cancel")
def cli_cancel(reservation_id: str):
    """Cancel one of your reservations."""
    with _open() as ctx:
        result = ctx.reservations.cancel(reservation_id)
        if result.success:
            print(f"Reservation {reservation_id} cancelled.")
        else:
            print(f"Cancellation failed: {result.error}")


@app.command("reservations")
def cli_reservations():
    """List your reservations, newest first."""
    with _open() as ctx:
        if not _require_login(ctx):
            return
        print_reservations(ctx.reservations.list_for_user())


@app.command("sync")
def cli_sync():
    """Push the local catalog and reservations to the server now."""
    with _open() as ctx:
        if ctx.sync is None:
            print("Server unavailable; nothing synced.")
            return
        if ctx.sync.push(ctx.catalog.books_payload(), ctx.catalog.reservations_payload()):
            print("Data synced with server.")
        else:
            print("Server sync failed.")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
