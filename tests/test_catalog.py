import pytest

from crumbelore.book import Book, BookUpdate
from crumbelore.catalog import Catalog, DEMO_BOOKS
from crumbelore.errors import DuplicateBook, ValidationError
from crumbelore.reservation import ReservationStatus


def test_first_run_seeds_demo_books(catalog, store):
    assert [b.id for b in catalog.list_books()] == [b["id"] for b in DEMO_BOOKS]
    # persisted, so a second catalog does not reseed
    assert len(store.read("books")) == 4


def test_seed_can_be_disabled(store):
    store.initialize()
    assert Catalog(store, seed=False).list_books() == []


def test_existing_books_are_not_reseeded(store, clock):
    store.initialize()
    store.write("books", [Book("only", "Only One", "Someone").to_dict()])

    catalog = Catalog(store, clock=clock)
    assert [b.id for b in catalog.list_books()] == ["only"]


def test_search_matches_tags(catalog):
    results = catalog.search("mystery", "all")
    assert [b.title for b in results] == ["The Silent Patient"]


def test_search_no_match(catalog):
    assert catalog.search("nonexistent", "all") == []


def test_search_blank_query_matches_all_in_order(catalog):
    assert [b.id for b in catalog.search("   ")] == [b["id"] for b in DEMO_BOOKS]
    assert len(catalog.search(None)) == 4


def test_search_is_case_insensitive_over_title_author_genre(catalog):
    assert [b.id for b in catalog.search("ANDY")] == ["project-hail-mary"]
    assert [b.id for b in catalog.search("hail")] == ["project-hail-mary"]
    assert [b.id for b in catalog.search("self-help")] == ["atomic-habits"]


def test_genre_filter_is_substring(catalog):
    assert [b.id for b in catalog.search("", "thriller")] == ["silent-patient"]
    assert [b.id for b in catalog.search("the", "Romance")] == ["evelyn-hugo"]


def test_get_by_id(catalog):
    assert catalog.get_by_id("atomic-habits").author == "James Clear"
    assert catalog.get_by_id("missing") is None


def test_add_derives_slug_and_copies(catalog, store):
    book = catalog.add({"title": "The  Hobbit: There & Back!", "author": "J.R.R. Tolkien",
                        "genre": "Fantasy", "copies": "3"})

    assert book.id == "the-hobbit-there--back"
    assert book.total_copies == book.available_copies == 3
    assert book.icon == "fas fa-magic"
    assert book.rating == 0
    assert book.year == 2024
    assert any(b["id"] == book.id for b in store.read("books"))


def test_add_defaults(catalog):
    book = catalog.add({"title": "Plain", "author": "Anon", "genre": "Cookbooks", "copies": "lots"})

    assert book.total_copies == 1
    assert book.available_copies == 1
    assert book.icon == "fas fa-book"
    assert book.pages == 0
    assert book.tags == []


def test_add_accepts_comma_separated_tags(catalog):
    book = catalog.add({"title": "Tagged", "author": "A", "tags": "cozy, autumn"})
    assert book.tags == ["cozy", "autumn"]
    assert catalog.search("autumn") == [book]


def test_add_requires_title_and_author(catalog):
    with pytest.raises(ValidationError) as exc:
        catalog.add({"title": "  "})
    assert exc.value.fields == ["title", "author"]


def test_add_rejects_identifier_collision(catalog):
    catalog.add({"title": "Dune", "author": "Frank Herbert"})
    with pytest.raises(DuplicateBook):
        catalog.add({"title": "DUNE", "author": "Someone Else"})
    assert len(catalog.search("dune")) == 1


def test_update_applies_known_fields_only(catalog):
    book = catalog.update("atomic-habits", {"rating": 5, "availableCopies": 4, "publisher": "Avery"})

    assert book.rating == 5
    assert book.available_copies == 4
    assert not hasattr(book, "publisher")


def test_update_with_explicit_diff(catalog, store):
    catalog.update("evelyn-hugo", BookUpdate(title="Evelyn Hugo", total_copies=5))

    stored = next(b for b in store.read("books") if b["id"] == "evelyn-hugo")
    assert stored["title"] == "Evelyn Hugo"
    assert stored["totalCopies"] == 5
    assert stored["author"] == "Taylor Jenkins Reid"


def test_update_missing_book(catalog):
    assert catalog.update("nope", {"title": "x"}) is None


def test_delete_cascades_to_active_reservations(catalog, manager, logged_in, clock, store):
    result = manager.reserve("project-hail-mary")
    assert result.success
    clock.advance(hours=1)

    assert catalog.delete("project-hail-mary") is True

    assert catalog.get_by_id("project-hail-mary") is None
    reservation = manager.get(result.data["reservationId"])
    assert reservation.status == ReservationStatus.CANCELLED
    assert reservation.cancelled_date == "2024-01-01T01:00:00.000Z"
    # reservation retained, and persisted as cancelled
    stored = store.read("reservations")
    assert stored[0]["status"] == "cancelled"


def test_delete_leaves_cancelled_reservations_alone(catalog, manager, logged_in, clock):
    rid = manager.reserve("atomic-habits").data["reservationId"]
    manager.cancel(rid)
    first_cancel = manager.get(rid).cancelled_date
    clock.advance(days=1)

    catalog.delete("atomic-habits")

    assert manager.get(rid).cancelled_date == first_cancel


def test_delete_missing_book(catalog):
    assert catalog.delete("nope") is False


def test_stats(catalog, manager, logged_in):
    manager.reserve("silent-patient")
    stats = catalog.stats()

    assert stats["totalBooks"] == 4
    assert stats["totalCopies"] == 11
    assert stats["availableCopies"] == 7
    assert stats["activeReservations"] == 1
    assert stats["genreDistribution"]["Romance"] == 1


def test_reload_reads_back_persisted_state(catalog, store, clock):
    catalog.add({"title": "Persisted", "author": "Writer"})

    other = Catalog(store, clock=clock)
    assert other.get_by_id("persisted") is not None


@pytest.mark.parametrize("copies", ["-3", -1])
def test_add_rejects_negative_copies(catalog, copies):
    with pytest.raises(ValidationError) as exc:
        catalog.add({"title": "Negative", "author": "A", "copies": copies})

    assert exc.value.fields == ["copies"]
    assert catalog.get_by_id("negative") is None


def test_stored_book_with_null_title_stays_searchable(store, clock):
    store.initialize()
    store.write("books", [{"id": "untitled", "title": None, "author": None, "genre": "Poetry"}])

    catalog = Catalog(store, clock=clock)

    assert catalog.get_by_id("untitled").title == ""
    assert [b.id for b in catalog.search("poe")] == ["untitled"]
    assert catalog.search("a") == []
