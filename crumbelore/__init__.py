"""Crumbelore Bookstore & Cafe - core application package

This package contains:
- API server endpoints (api.py)
- Record store over JSON collection files (database.py)
- Client-side catalog and reservation workflow (catalog.py, reservations.py)
- Demo session/auth stub (auth.py)
- Data models (book.py, reservation.py)
- CLI interface (main.py)
"""

__version__ = "1.0.0"
