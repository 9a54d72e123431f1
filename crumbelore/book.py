from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

from .utils import parse_int

DEFAULT_ICON = "fas fa-book"

GENRE_ICONS = {
    "Mystery & Thriller": "fas fa-search",
    "Romance": "fas fa-heart",
    "Science Fiction": "fas fa-rocket",
    "Fantasy": "fas fa-magic",
    "Self-Help": "fas fa-brain",
    "Biography": "fas fa-user",
    "History": "fas fa-landmark",
    "Poetry": "fas fa-feather-alt",
    "Young Adult": "fas fa-star",
}

# python attribute -> wire (JSON) key
WIRE_KEYS = {
    "id": "id",
    "title": "title",
    "author": "author",
    "genre": "genre",
    "description": "description",
    "total_copies": "totalCopies",
    "available_copies": "availableCopies",
    "rating": "rating",
    "isbn": "isbn",
    "pages": "pages",
    "year": "year",
    "icon": "icon",
    "tags": "tags",
}


def genre_icon(genre: Optional[str]) -> str:
    return GENRE_ICONS.get(genre or "", DEFAULT_ICON)


def _normalize_tags(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(t) for t in value]
    return [str(value)]


class Book:
    """A title in the catalog together with its copy counts."""

    def __init__(self, id: str, title: str, author: str, genre: str = "", description: str = "",
                 total_copies: int = 1, available_copies: Optional[int] = None, rating: float = 0,
                 isbn: str = "", pages: int = 0, year: Optional[int] = None, icon: Optional[str] = None,
                 tags: Optional[List[str]] = None) -> None:
        self.id = id
        self.title = title
        self.author = author
        self.genre = genre or ""
        self.description = description or ""
        self.total_copies = int(total_copies)
        self.available_copies = self.total_copies if available_copies is None else int(available_copies)
        self.rating = rating
        self.isbn = isbn or ""
        self.pages = pages
        self.year = year
        self.icon = icon or genre_icon(self.genre)
        self.tags = _normalize_tags(tags)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} ({self.available_copies}/{self.total_copies} available)"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book(id={self.id!r}, title={self.title!r})"

    def to_dict(self) -> dict:
        return {wire: getattr(self, attr) for attr, wire in WIRE_KEYS.items()}

    @staticmethod
    def from_dict(data: dict) -> "Book":
        total = parse_int(data.get("totalCopies"))
        available = parse_int(data.get("availableCopies"))
        return Book(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            author=data.get("author") or "",
            genre=data.get("genre", ""),
            description=data.get("description", ""),
            total_copies=total if total is not None else 1,
            available_copies=available,
            rating=data.get("rating", 0),
            isbn=data.get("isbn", ""),
            pages=parse_int(data.get("pages")) or 0,
            year=parse_int(data.get("year")),
            icon=data.get("icon"),
            tags=data.get("tags"),
        )


@dataclass
class BookUpdate:
    """Field-level diff for :meth:`Catalog.update`. Unset (None) fields are left alone."""

    title: Optional[str] = None
    author: Optional[str] = None
    genre: Optional[str] = None
    description: Optional[str] = None
    total_copies: Optional[int] = None
    available_copies: Optional[int] = None
    rating: Optional[float] = None
    isbn: Optional[str] = None
    pages: Optional[int] = None
    year: Optional[int] = None
    icon: Optional[str] = None
    tags: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookUpdate":
        """Build a diff from wire or attribute keys; keys that are not Book fields are dropped."""
        known = {f.name for f in fields(cls)}
        by_wire = {wire: attr for attr, wire in WIRE_KEYS.items()}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            attr = by_wire.get(key, key)
            if attr in known:
                values[attr] = value
        return cls(**values)

    def changes(self) -> Dict[str, Any]:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name in ("total_copies", "available_copies", "pages", "year"):
                value = parse_int(value)
                if value is None:
                    continue
            elif f.name == "tags":
                value = _normalize_tags(value)
            out[f.name] = value
        return out
