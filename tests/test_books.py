# tests/test_books.py

import pytest


def _add(client, headers, **fields):
    payload = {"title": "Dune", "author": "Frank Herbert"}
    payload.update(fields)
    response = client.post("/api/books", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def other_headers(client):
    from conftest import login

    client.post(
        "/api/auth/register",
        json={"username": "other", "email": "other@example.com", "password": "otherpw1"},
    )
    return login(client, "other@example.com", "otherpw1")


def test_books_require_auth(client):
    assert client.get("/api/books").status_code == 401


def test_create_and_get(client, user_headers):
    book = _add(client, user_headers, rating=5)
    assert book["status"] == "to-read"
    assert book["rating"] == 5

    response = client.get(f"/api/books/{book['id']}", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["title"] == "Dune"


def test_create_validates_fields(client, user_headers):
    response = client.post("/api/books", json={"title": "", "author": "X", "rating": 9}, headers=user_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation Error"


def test_list_filters_by_status(client, user_headers):
    _add(client, user_headers, title="Dune", status="read")
    _add(client, user_headers, title="Emma", author="Jane Austen", status="reading")

    titles = [b["title"] for b in client.get("/api/books", headers=user_headers).json()]
    assert sorted(titles) == ["Dune", "Emma"]

    reading = client.get("/api/books", params={"status": "reading"}, headers=user_headers).json()
    assert [b["title"] for b in reading] == ["Emma"]


def test_update_is_partial(client, user_headers):
    book = _add(client, user_headers, notes="loan from library")
    response = client.put(f"/api/books/{book['id']}", json={"status": "read"}, headers=user_headers)
    assert response.status_code == 200
    updated = response.json()
    assert updated["status"] == "read"
    assert updated["notes"] == "loan from library"
    assert updated["title"] == "Dune"


def test_delete(client, user_headers):
    book = _add(client, user_headers)
    response = client.delete(f"/api/books/{book['id']}", headers=user_headers)
    assert response.json() == {"message": "Book deleted"}
    assert client.get(f"/api/books/{book['id']}", headers=user_headers).status_code == 404


def test_malformed_id_is_not_found(client, user_headers):
    response = client.get("/api/books/not-an-id", headers=user_headers)
    assert response.status_code == 404
    assert response.json() == {"message": "Book not found"}


def test_books_are_private_to_their_owner(client, user_headers, other_headers):
    book = _add(client, user_headers)
    assert client.get("/api/books", headers=other_headers).json() == []
    assert client.get(f"/api/books/{book['id']}", headers=other_headers).status_code == 404
    assert client.put(f"/api/books/{book['id']}", json={"title": "Mine"}, headers=other_headers).status_code == 404
    assert client.delete(f"/api/books/{book['id']}", headers=other_headers).status_code == 404


def test_update_rejects_null_required_fields(client, user_headers):
    book = _add(client, user_headers)
    response = client.put(f"/api/books/{book['id']}", json={"title": None, "status": None}, headers=user_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Validation Error"

    stored = client.get(f"/api/books/{book['id']}", headers=user_headers).json()
    assert stored["title"] == "Dune"
    assert stored["status"] == "to-read"


def test_update_can_clear_optional_fields(client, user_headers):
    book = _add(client, user_headers, rating=4, notes="reread")
    response = client.put(f"/api/books/{book['id']}", json={"rating": None, "notes": None}, headers=user_headers)
    assert response.status_code == 200
    assert response.json()["rating"] is None
    assert response.json()["notes"] is None
