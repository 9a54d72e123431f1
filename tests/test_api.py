import pytest
from fastapi.testclient import TestClient

from crumbelore.api import DEFAULT_MENU, create_app
from crumbelore.database import RecordStore


@pytest.fixture
def server_store(tmp_path):
    return RecordStore(tmp_path / "data", retry_delay=0)


@pytest.fixture
def client(server_store):
    # entering the client runs the lifespan, which creates the data directory
    with TestClient(create_app(server_store)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["timestamp"].endswith("Z")
    assert body["uptime"] >= 0


def test_startup_fails_when_data_dir_cannot_be_created(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    app = create_app(RecordStore(blocker / "data"))

    with pytest.raises(Exception):
        with TestClient(app):
            pass


def test_unknown_route(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"message": "Route not found"}


# ------------------------- Auth ------------------------- #
def test_login_creates_user_once(client, server_store):
    first = client.post("/api/auth/login", json={"email": "sam@example.com", "password": "x"})
    second = client.post("/api/auth/login", json={"email": "sam@example.com", "password": "other"})

    assert first.status_code == 200
    user = first.json()["user"]
    assert user["name"] == "sam"
    assert user["type"] == "customer"
    assert first.json()["token"]
    assert second.json()["user"]["id"] == user["id"]
    stored = server_store.read("users")
    assert len(stored) == 1
    assert stored[0]["createdAt"].endswith("Z")


def test_login_keeps_requested_type_for_new_user(client):
    response = client.post("/api/auth/login", json={"email": "boss@example.com", "password": "x", "userType": "admin"})
    assert response.json()["user"]["type"] == "admin"


def test_login_missing_fields(client):
    response = client.post("/api/auth/login", json={"email": "sam@example.com"})

    assert response.status_code == 400
    assert response.json() == {"message": "Email and password required", "fields": ["password"]}


def test_login_succeeds_even_if_user_cannot_be_saved(client, server_store, monkeypatch):
    monkeypatch.setattr(server_store, "write", lambda collection, records: False)

    response = client.post("/api/auth/login", json={"email": "sam@example.com", "password": "x"})
    assert response.status_code == 200


# ------------------------- Books ------------------------- #
def test_books_start_empty(client):
    assert client.get("/api/books").json() == []


def test_create_book(client):
    response = client.post("/api/books", json={"title": "Dune", "author": "Frank Herbert", "genre": "Science Fiction"})

    assert response.status_code == 201
    book = response.json()
    assert book["id"].startswith("book-")
    assert book["genre"] == "Science Fiction"
    assert book["createdAt"].endswith("Z")
    assert client.get(f"/api/books/{book['id']}").json()["title"] == "Dune"


def test_create_book_keeps_given_id(client):
    response = client.post("/api/books", json={"id": "dune", "title": "Dune", "author": "Frank Herbert"})
    assert response.json()["id"] == "dune"


def test_create_book_missing_author(client):
    response = client.post("/api/books", json={"title": "Dune"})

    assert response.status_code == 400
    assert response.json()["fields"] == ["author"]


def test_create_book_with_non_object_body(client):
    response = client.post("/api/books", json=["Dune"])

    assert response.status_code == 400
    assert "message" in response.json()


def test_get_missing_book(client):
    response = client.get("/api/books/nope")
    assert response.status_code == 404
    assert response.json() == {"message": "Book not found"}


def test_sync_books_replaces_collection(client):
    client.post("/api/books", json={"title": "Old", "author": "Gone"})
    books = [{"id": "a", "title": "A", "author": "X"}, {"id": "b", "title": "B", "author": "Y"}]

    response = client.post("/api/books/sync", json={"books": books})

    assert response.status_code == 200
    assert response.json() == {"message": "Books synced successfully"}
    assert client.get("/api/books").json() == books


def test_sync_books_requires_array(client):
    response = client.post("/api/books/sync", json={"books": {"id": "a"}})

    assert response.status_code == 400
    assert response.json()["fields"] == ["books"]


def test_store_failure_is_500(client, server_store, monkeypatch):
    monkeypatch.setattr(server_store, "write", lambda collection, records: False)

    response = client.post("/api/books", json={"title": "Dune", "author": "Frank Herbert"})

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to save book"}


def test_unexpected_error_is_generic_500(server_store, monkeypatch):
    with TestClient(create_app(server_store), raise_server_exceptions=False) as client:
        def explode(collection):
            raise RuntimeError("boom")

        monkeypatch.setattr(server_store, "read", explode)
        response = client.get("/api/books")

    assert response.status_code == 500
    assert response.json() == {"message": "Something went wrong!"}


# ------------------------- Orders ------------------------- #
def test_create_order(client, server_store):
    payload = {"items": [{"id": "vanilla-latte", "qty": 2}], "total": 560, "customer": "Sam"}

    response = client.post("/api/orders", json=payload)

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["id"].startswith("ORD-")
    assert order["customer"] == "Sam"
    assert client.get("/api/orders").json() == [order]


def test_create_order_requires_items_and_total(client):
    response = client.post("/api/orders", json={"items": []})

    assert response.status_code == 400
    assert response.json()["fields"] == ["total"]


# ------------------------- Reservations ------------------------- #
def test_create_reservation(client, server_store):
    response = client.post("/api/reservations", json={"bookId": "dune", "userId": 1})

    assert response.status_code == 201
    reservation = response.json()
    assert reservation["id"].startswith("RES-")
    assert server_store.read("reservations") == [reservation]


def test_sync_reservations(client, server_store):
    reservations = [{"id": "RES-1", "bookId": "dune", "status": "cancelled"}]

    response = client.post("/api/reservations/sync", json={"reservations": reservations})

    assert response.json() == {"message": "Reservations synced successfully"}
    assert server_store.read("reservations") == reservations


def test_sync_reservations_requires_array(client):
    response = client.post("/api/reservations/sync", json={"reservations": None})
    assert response.status_code == 400


# ------------------------- Dashboard & menu ------------------------- #
def test_dashboard_stats(client, server_store):
    server_store.write("orders", [{"id": "ORD-old", "total": 999, "createdAt": "2001-01-01T10:00:00.000Z"}])
    client.post("/api/orders", json={"items": ["latte"], "total": 280})
    client.post("/api/orders", json={"items": ["kit"], "total": "580"})
    client.post("/api/books", json={"title": "Dune", "author": "Frank Herbert"})
    client.post("/api/auth/login", json={"email": "sam@example.com", "password": "x"})

    stats = client.get("/api/dashboard/stats").json()

    assert stats == {
        "totalOrders": 3,
        "todayOrders": 2,
        "todaySales": 860.0,
        "totalBooks": 1,
        "totalUsers": 1,
    }


def test_menu(client):
    assert client.get("/api/menu").json() == DEFAULT_MENU

    response = client.post("/api/menu", json={"name": "Chai"})
    assert response.status_code == 201
    assert response.json() == {"message": "Menu item added successfully"}
