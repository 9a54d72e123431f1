import logging
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Union
from datetime import datetime

from .book import Book, BookUpdate, genre_icon
from .database import BOOKS, RESERVATIONS, RecordStore
from .errors import DuplicateBook, NoCopiesAvailable, NotFound, ValidationError
from .reservation import Reservation
from .utils import parse_int, slugify, utc_now

logger = logging.getLogger(__name__)

DEMO_BOOKS: List[Dict[str, Any]] = [
    {
        "id": "silent-patient",
        "title": "The Silent Patient",
        "author": "Alex Michaelides",
        "genre": "Mystery & Thriller",
        "description": "A gripping psychological thriller about a woman's act of violence against "
                       "her husband and the psychotherapist obsessed with treating her.",
        "totalCopies": 3,
        "availableCopies": 2,
        "rating": 4.8,
        "isbn": "978-1250301697",
        "pages": 336,
        "year": 2019,
        "icon": "fas fa-search",
        "tags": ["psychological", "thriller", "mystery"],
    },
    {
        "id": "evelyn-hugo",
        "title": "The Seven Husbands of Evelyn Hugo",
        "author": "Taylor Jenkins Reid",
        "genre": "Romance",
        "description": "In this entrancing novel, reclusive Hollywood icon Evelyn Hugo finally decides "
                       "to tell her life story, but only to unknown journalist Monique Grant.",
        "totalCopies": 2,
        "availableCopies": 1,
        "rating": 4.9,
        "isbn": "978-1501139239",
        "pages": 400,
        "year": 2017,
        "icon": "fas fa-heart",
        "tags": ["hollywood", "romance", "lgbtq"],
    },
    {
        "id": "project-hail-mary",
        "title": "Project Hail Mary",
        "author": "Andy Weir",
        "genre": "Science Fiction",
        "description": "Ryland Grace is the sole survivor on a desperate, last-chance mission, and if "
                       "he fails, humanity and the earth itself will perish.",
        "totalCopies": 2,
        "availableCopies": 2,
        "rating": 4.6,
        "isbn": "978-0593135204",
        "pages": 496,
        "year": 2021,
        "icon": "fas fa-rocket",
        "tags": ["space", "science", "adventure"],
    },
    {
        "id": "atomic-habits",
        "title": "Atomic Habits",
        "author": "James Clear",
        "genre": "Self-Help",
        "description": "A comprehensive guide to building good habits and breaking bad ones, with "
                       "practical strategies for personal and professional growth.",
        "totalCopies": 4,
        "availableCopies": 3,
        "rating": 4.8,
        "isbn": "978-0735211292",
        "pages": 320,
        "year": 2018,
        "icon": "fas fa-brain",
        "tags": ["productivity", "habits", "self-improvement"],
    },
]


class Catalog:
    """The client's working copy of the book and reservation sets.

    Both sets are loaded from a :class:`RecordStore` and written back after
    every mutation. All mutations take ``self.lock`` so that a check followed
    by an update (availability, duplicate reservation) is atomic within the
    process.
    """

    def __init__(self, store: RecordStore, seed: bool = True,
                 clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self.clock = clock
        self.lock = RLock()
        self.books: List[Book] = []
        self.reservations: List[Reservation] = []
        self.reload()
        if seed and not self.books:
            self._seed()

    # ------------------------- Persistence ------------------------- #
    def reload(self) -> None:
        with self.lock:
            self.books = [Book.from_dict(b) for b in self.store.read(BOOKS) if isinstance(b, dict)]
            self.reservations = [
                Reservation.from_dict(r) for r in self.store.read(RESERVATIONS) if isinstance(r, dict)
            ]

    def _seed(self) -> None:
        self.books = [Book.from_dict(b) for b in DEMO_BOOKS]
        logger.info(f"Seeded catalog with {len(self.books)} demo books")
        self.save_books()

    def save_books(self) -> bool:
        ok = self.store.write(BOOKS, self.books_payload())
        if not ok:
            logger.error("Error saving books")
        return ok

    def save_reservations(self) -> bool:
        ok = self.store.write(RESERVATIONS, self.reservations_payload())
        if not ok:
            logger.error("Error saving reservations")
        return ok

    def save(self) -> bool:
        books_ok = self.save_books()
        reservations_ok = self.save_reservations()
        return books_ok and reservations_ok

    def books_payload(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [b.to_dict() for b in self.books]

    def reservations_payload(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [r.to_dict() for r in self.reservations]

    # ------------------------- Queries ------------------------- #
    def list_books(self) -> List[Book]:
        return list(self.books)

    def get_by_id(self, book_id: str) -> Optional[Book]:
        for book in self.books:
            if book.id == book_id:
                return book
        return None

    def search(self, query: Optional[str], genre: Optional[str] = None) -> List[Book]:
        """Case-insensitive substring search over title, author, genre and tags."""
        results = list(self.books)

        if query and query.strip():
            term = query.lower()
            results = [
                b for b in results
                if term in b.title.lower()
                or term in b.author.lower()
                or term in b.genre.lower()
                or any(term in tag.lower() for tag in b.tags)
            ]

        if genre and genre != "all":
            wanted = genre.lower()
            results = [b for b in results if wanted in b.genre.lower()]

        return results

    def stats(self) -> Dict[str, Any]:
        distribution: Dict[str, int] = {}
        for book in self.books:
            distribution[book.genre] = distribution.get(book.genre, 0) + 1
        return {
            "totalBooks": len(self.books),
            "totalCopies": sum(b.total_copies for b in self.books),
            "availableCopies": sum(b.available_copies for b in self.books),
            "activeReservations": sum(1 for r in self.reservations if r.is_active),
            "genreDistribution": distribution,
        }

    # ------------------------- Admin operations ------------------------- #
    def add(self, data: Dict[str, Any]) -> Book:
        """Create a book from form-style input and persist it."""
        missing = [f for f in ("title", "author") if not str(data.get(f) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        book_id = str(data.get("id") or slugify(data["title"]))
        if not book_id:
            raise ValidationError("Title must contain at least one letter or digit", fields=["title"])

        copies = parse_int(data.get("copies"))
        if copies is not None and copies < 0:
            raise ValidationError("Copies cannot be negative", fields=["copies"])
        copies = copies or 1
        book = Book(
            id=book_id,
            title=data["title"],
            author=data["author"],
            genre=data.get("genre") or "",
            description=data.get("description") or "",
            total_copies=copies,
            available_copies=copies,
            rating=0,
            isbn=data.get("isbn") or "",
            pages=parse_int(data.get("pages")) or 0,
            year=parse_int(data.get("year")) or self.clock().year,
            icon=genre_icon(data.get("genre")),
            tags=data.get("tags"),
        )

        with self.lock:
            if self.get_by_id(book_id):
                raise DuplicateBook(f"A book with id '{book_id}' already exists", fields=["title"])
            self.books.append(book)
            self.save_books()
        logger.info(f"Added book {book.id} ({book.total_copies} copies)")
        return book

    def update(self, book_id: str, patch: Union[BookUpdate, Dict[str, Any]]) -> Optional[Book]:
        if not isinstance(patch, BookUpdate):
            patch = BookUpdate.from_dict(patch)
        with self.lock:
            book = self.get_by_id(book_id)
            if not book:
                return None
            for attr, value in patch.changes().items():
                setattr(book, attr, value)
            self.save_books()
        return book

    def delete(self, book_id: str) -> bool:
        """Remove a book and cancel every active reservation that references it."""
        with self.lock:
            index = next((i for i, b in enumerate(self.books) if b.id == book_id), None)
            if index is None:
                return False

            now = self.clock()
            cancelled = 0
            for reservation in self.reservations:
                if reservation.book_id == book_id and reservation.is_active:
                    reservation.cancel(now)
                    cancelled += 1

            del self.books[index]
            self.save_books()
            self.save_reservations()
        logger.info(f"Deleted book {book_id}; cancelled {cancelled} active reservation(s)")
        return True

    # ------------------------- Copy accounting ------------------------- #
    def claim_copy(self, book_id: str) -> Book:
        """Take one available copy, or raise if none is left."""
        with self.lock:
            book = self.get_by_id(book_id)
            if not book:
                raise NotFound("Book not found")
            if book.available_copies <= 0:
                raise NoCopiesAvailable()
            book.available_copies -= 1
            return book

    def release_copy(self, book_id: str) -> Optional[Book]:
        """Return one copy. Not clamped to ``total_copies``."""
        with self.lock:
            book = self.get_by_id(book_id)
            if book:
                book.available_copies += 1
            return book
