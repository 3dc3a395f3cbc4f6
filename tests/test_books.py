"""
Tests for Books Endpoints

Tests cover:
- Listing, reading and ranking books
- Create (multipart book + image), update, delete with ownership
- Rating
- Error body format: {"error": code, "message": text}
"""

import json

from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from grimoire.models import Book, User
from grimoire.services.storage import LocalImageStore
from tests.conftest import PNG_BYTES, get_auth_header, make_user

BOOK_FIELDS = {
    "title": "The Dispossessed",
    "author": "Ursula K. Le Guin",
    "year": "1974",
    "genre": "Science Fiction",
    "ratings": [{"grade": 0}],
}


def multipart(book: dict | None = None, image: tuple | None = ("cover.png", PNG_BYTES, "image/png")) -> dict:
    """Build the data/files arguments of a multipart book request."""
    kwargs = {"data": {"book": json.dumps(book)} if book is not None else {}}
    if image is not None:
        kwargs["files"] = {"image": image}
    return kwargs


# =============================================================================
# Read Endpoints
# =============================================================================
class TestListBooks:
    """Tests for GET /api/books"""

    def test_empty_catalog(self, client: TestClient):
        response = client.get("/api/books")

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []

    def test_camel_case_fields(self, client: TestClient, sample_book: Book, sample_user: User):
        response = client.get("/api/books")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data) == 1
        book = data[0]
        assert book["id"] == sample_book.id
        assert book["userId"] == sample_user.id
        assert book["imageUrl"] == sample_book.image_url
        assert book["averageRating"] == 0
        assert book["ratings"] == []


class TestGetBook:
    """Tests for GET /api/books/{book_id}"""

    def test_get_book(self, client: TestClient, sample_book: Book):
        response = client.get(f"/api/books/{sample_book.id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == "Dune"
        assert response.json()["year"] == 1965

    def test_book_not_found(self, client: TestClient):
        response = client.get("/api/books/99999")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "book_not_found", "message": "This book does not exist"}

    def test_malformed_id(self, client: TestClient):
        response = client.get("/api/books/64f1c2e9a1b2")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "malformed_id"


class TestBestRating:
    """Tests for GET /api/books/bestrating"""

    def test_empty_catalog(self, client: TestClient):
        response = client.get("/api/books/bestrating")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "no_books"

    def test_top_three(self, client: TestClient, add_book):
        add_book("Good", [4])
        add_book("Best", [5])
        add_book("Poor", [1])
        add_book("Fine", [3])

        response = client.get("/api/books/bestrating")

        assert response.status_code == status.HTTP_200_OK
        assert [b["title"] for b in response.json()] == ["Best", "Good", "Fine"]

    def test_not_shadowed_by_book_route(self, client: TestClient, sample_book: Book):
        response = client.get("/api/books/bestrating")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()[0]["id"] == sample_book.id


# =============================================================================
# Create
# =============================================================================
class TestCreateBook:
    """Tests for POST /api/books"""

    def test_create_book(
        self, client: TestClient, db_session: Session, sample_user: User, local_store: LocalImageStore
    ):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart(BOOK_FIELDS),
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["message"] == "Book created successfully"

        book = db_session.get(Book, data["id"])
        assert book.user_id == sample_user.id
        assert book.year == 1974
        assert book.ratings == []
        assert book.image_url.startswith("http://testserver/images/ursula-k-le-guin_the-dispossessed_1974_")
        assert local_store.path_for(book.image_url).read_bytes() == PNG_BYTES

    def test_requires_token(self, client: TestClient, local_store: LocalImageStore):
        response = client.post("/api/books", **multipart(BOOK_FIELDS))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "missing_token"
        assert not local_store.directory.exists() or not any(local_store.directory.iterdir())

    def test_spoofed_user_id_ignored(self, client: TestClient, db_session: Session, sample_user: User, second_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart({**BOOK_FIELDS, "userId": second_user.id}),
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert db_session.get(Book, response.json()["id"]).user_id == sample_user.id

    def test_missing_image(self, client: TestClient, sample_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart(BOOK_FIELDS, image=None),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "missing_image"

    def test_invalid_file_type(self, client: TestClient, sample_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart(BOOK_FIELDS, image=("cover.gif", b"GIF89a", "image/gif")),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_file_type"

    def test_empty_body(self, client: TestClient, sample_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart(None),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "empty_body"

    def test_missing_fields(self, client: TestClient, sample_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart({"title": "Only a title"}),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "missing_fields"

    def test_future_year(self, client: TestClient, sample_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart({**BOOK_FIELDS, "year": "9999"}),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_year"

    def test_book_field_not_json(self, client: TestClient, sample_user: User):
        response = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            data={"book": "{not json"},
            files={"image": ("cover.png", PNG_BYTES, "image/png")},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "validation_error"


# =============================================================================
# Update
# =============================================================================
class TestUpdateBook:
    """Tests for PUT /api/books/{book_id}"""

    def test_owner_updates_with_json(
        self, client: TestClient, db_session: Session, sample_book: Book, sample_user: User
    ):
        image_url = sample_book.image_url

        response = client.put(
            f"/api/books/{sample_book.id}",
            json={"title": "Dune (Deluxe Edition)"},
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Book modified successfully"}
        db_session.refresh(sample_book)
        assert sample_book.title == "Dune (Deluxe Edition)"
        assert sample_book.image_url == image_url

    def test_owner_replaces_image(
        self, client: TestClient, db_session: Session, sample_book: Book, sample_user: User,
        local_store: LocalImageStore,
    ):
        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(sample_user),
            **multipart({"year": 1966}),
        )

        assert response.status_code == status.HTTP_200_OK
        db_session.refresh(sample_book)
        assert sample_book.year == 1966
        assert "frank-herbert_dune_1966_" in sample_book.image_url
        assert local_store.path_for(sample_book.image_url).exists()

    def test_non_owner_is_forbidden(
        self, client: TestClient, db_session: Session, sample_book: Book, second_user: User,
        local_store: LocalImageStore,
    ):
        response = client.put(
            f"/api/books/{sample_book.id}",
            headers=get_auth_header(second_user),
            **multipart({"title": "Hijacked"}),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "forbidden"
        db_session.refresh(sample_book)
        assert sample_book.title == "Dune"
        # the image uploaded with the rejected request was removed
        assert not any(local_store.directory.iterdir())

    def test_book_not_found(self, client: TestClient, sample_user: User):
        response = client.put(
            "/api/books/99999",
            json={"title": "Ghost"},
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_empty_body(self, client: TestClient, sample_book: Book, sample_user: User):
        response = client.put(f"/api/books/{sample_book.id}", headers=get_auth_header(sample_user))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "empty_body"

    def test_nothing_to_update(self, client: TestClient, sample_book: Book, sample_user: User):
        response = client.put(
            f"/api/books/{sample_book.id}",
            json={"userId": 12},
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "modification_failed"

    def test_identical_values(self, client: TestClient, sample_book: Book, sample_user: User):
        response = client.put(
            f"/api/books/{sample_book.id}",
            json={"title": "Dune"},
            headers=get_auth_header(sample_user),
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "modification_failed"

    def test_null_field_is_missing(
        self, client: TestClient, db_session: Session, sample_book: Book, sample_user: User
    ):
        for field in ("title", "author", "genre"):
            response = client.put(
                f"/api/books/{sample_book.id}",
                json={field: None},
                headers=get_auth_header(sample_user),
            )

            assert response.status_code == status.HTTP_400_BAD_REQUEST
            assert response.json()["error"] == "missing_fields"

        db_session.refresh(sample_book)
        assert sample_book.title == "Dune"
        assert sample_book.author == "Frank Herbert"


# =============================================================================
# Delete
# =============================================================================
class TestDeleteBook:
    """Tests for DELETE /api/books/{book_id}"""

    def test_owner_deletes(self, client: TestClient, sample_book: Book, sample_user: User):
        book_id = sample_book.id

        response = client.delete(f"/api/books/{book_id}", headers=get_auth_header(sample_user))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Book deleted successfully"}
        assert client.get(f"/api/books/{book_id}").status_code == status.HTTP_404_NOT_FOUND

    def test_delete_removes_stored_image(
        self, client: TestClient, sample_user: User, local_store: LocalImageStore
    ):
        created = client.post(
            "/api/books",
            headers=get_auth_header(sample_user),
            **multipart(BOOK_FIELDS),
        ).json()
        book = client.get(f"/api/books/{created['id']}").json()
        assert local_store.path_for(book["imageUrl"]).exists()

        client.delete(f"/api/books/{created['id']}", headers=get_auth_header(sample_user))

        assert not local_store.path_for(book["imageUrl"]).exists()

    def test_non_owner_is_forbidden(self, client: TestClient, sample_book: Book, second_user: User):
        response = client.delete(f"/api/books/{sample_book.id}", headers=get_auth_header(second_user))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert client.get(f"/api/books/{sample_book.id}").status_code == status.HTTP_200_OK

    def test_requires_token(self, client: TestClient, sample_book: Book):
        response = client.delete(f"/api/books/{sample_book.id}")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# Rating
# =============================================================================
class TestRateBook:
    """Tests for POST /api/books/{book_id}/rating"""

    def test_rate_book(self, client: TestClient, sample_book: Book, second_user: User):
        response = client.post(
            f"/api/books/{sample_book.id}/rating",
            json={"rating": 4},
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["averageRating"] == 4
        assert data["ratings"] == [{"userId": second_user.id, "grade": 4}]

    def test_client_user_id_ignored(self, client: TestClient, sample_book: Book, sample_user: User, second_user: User):
        response = client.post(
            f"/api/books/{sample_book.id}/rating",
            json={"userId": sample_user.id, "rating": 3},
            headers=get_auth_header(second_user),
        )

        assert response.json()["ratings"][0]["userId"] == second_user.id

    def test_rate_twice(self, client: TestClient, sample_book: Book, second_user: User):
        headers = get_auth_header(second_user)
        client.post(f"/api/books/{sample_book.id}/rating", json={"rating": 4}, headers=headers)

        response = client.post(f"/api/books/{sample_book.id}/rating", json={"rating": 2}, headers=headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "already_rated", "message": "You can rate a book only once"}

    def test_rating_out_of_range(self, client: TestClient, sample_book: Book, second_user: User):
        response = client.post(
            f"/api/books/{sample_book.id}/rating",
            json={"rating": 6},
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_rating"

    def test_rating_not_a_number(self, client: TestClient, sample_book: Book, second_user: User):
        response = client.post(
            f"/api/books/{sample_book.id}/rating",
            json={"rating": "great"},
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_rating"

    def test_rating_boolean(self, client: TestClient, sample_book: Book, second_user: User):
        response = client.post(
            f"/api/books/{sample_book.id}/rating",
            json={"rating": True},
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "invalid_rating"
        assert client.get(f"/api/books/{sample_book.id}").json()["ratings"] == []

    def test_empty_body(self, client: TestClient, sample_book: Book, second_user: User):
        response = client.post(
            f"/api/books/{sample_book.id}/rating",
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "empty_body"

    def test_book_not_found(self, client: TestClient, second_user: User):
        response = client.post(
            "/api/books/99999/rating",
            json={"rating": 4},
            headers=get_auth_header(second_user),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# End-to-end Scenario
# =============================================================================
def test_create_update_rate_scenario(client: TestClient, db_session: Session):
    """
    A creates a book, C may not edit it, A edits it, D and E rate it.
    """
    user_a = make_user(db_session, "a@example.com")
    user_c = make_user(db_session, "c@example.com")
    user_d = make_user(db_session, "d@example.com")
    user_e = make_user(db_session, "e@example.com")

    created = client.post(
        "/api/books",
        headers=get_auth_header(user_a),
        **multipart({"title": "B", "author": "Author", "year": 2020, "genre": "Fiction"}),
    )
    assert created.status_code == status.HTTP_201_CREATED
    book_url = f"/api/books/{created.json()['id']}"

    response = client.put(book_url, json={"year": 2021}, headers=get_auth_header(user_c))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert client.get(book_url).json()["year"] == 2020

    response = client.put(book_url, json={"year": 2021}, headers=get_auth_header(user_a))
    assert response.status_code == status.HTTP_200_OK
    assert client.get(book_url).json()["year"] == 2021

    response = client.post(f"{book_url}/rating", json={"rating": 4}, headers=get_auth_header(user_d))
    assert response.json()["averageRating"] == 4

    response = client.post(f"{book_url}/rating", json={"rating": 2}, headers=get_auth_header(user_d))
    assert response.json()["error"] == "already_rated"
    assert client.get(book_url).json()["averageRating"] == 4

    response = client.post(f"{book_url}/rating", json={"rating": 2}, headers=get_auth_header(user_e))
    assert response.json()["averageRating"] == 3


# =============================================================================
# Service Endpoints
# =============================================================================
def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "healthy"


def test_root(client: TestClient):
    response = client.get("/")

    assert response.status_code == status.HTTP_200_OK
    assert "message" in response.json()
