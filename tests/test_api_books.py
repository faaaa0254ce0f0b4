"""HTTP tests for the book catalog and lifecycle routes."""

from datetime import datetime, timedelta

import pytest

from conftest import auth_headers, book_payload

MISSING_BOOK_ID = "book_" + "0" * 32


class TestCatalog:
    def test_create_book(self, client):
        response = client.post("/api/books", json=book_payload(tags=["classic"]))

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Book created successfully"
        book = body["book"]
        assert book["isbn"] == "9780743273565"
        assert book["status"] == "available"
        assert book["isAvailable"] is True
        assert book["averageRating"] == 0
        assert book["reviewCount"] == 0
        assert book["checkedOutBy"] is None
        assert book["tags"] == ["classic"]

    def test_create_invalid_book(self, client):
        response = client.post("/api/books", json=book_payload(isbn="123", totalPages=0))

        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["errors"]}
        assert fields == {"isbn", "totalPages"}

    def test_duplicate_isbn(self, client, create_book):
        first = create_book()
        response = client.post("/api/books", json=book_payload(title="Copycat"))

        assert response.status_code == 409
        assert client.get(f"/api/books/{first['id']}").json()["book"]["title"] == first["title"]

    def test_get_book(self, client, create_book):
        book = create_book()
        response = client.get(f"/api/books/{book['id']}")

        assert response.status_code == 200
        assert response.json()["book"]["id"] == book["id"]

    def test_get_book_errors(self, client):
        assert client.get("/api/books/not-an-id").status_code == 400
        response = client.get(f"/api/books/{MISSING_BOOK_ID}")
        assert response.status_code == 404
        assert response.json() == {"message": "Book not found"}

    def test_delete_book(self, client, create_book):
        book = create_book()

        response = client.delete(f"/api/books/{book['id']}")
        assert response.json() == {"message": "Book deleted successfully"}
        assert client.get(f"/api/books/{book['id']}").status_code == 404


class TestListing:
    @pytest.fixture
    def books(self, create_book):
        return [
            create_book(title="Dune", genre="Science Fiction", rating=4.5, isbn="9780000000001"),
            create_book(title="Emma", genre="Romance", rating=3.7, isbn="9780000000002"),
            create_book(title="The Great Gatsby", genre="Fiction", rating=4, isbn="9780000000003"),
        ]

    def test_envelope(self, client, books):
        response = client.get("/api/books", params={"limit": 2, "sortBy": "title", "sortOrder": "asc"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Books retrieved successfully"
        assert [book["title"] for book in body["books"]] == ["Dune", "Emma"]
        assert body["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "totalItems": 3,
            "itemsPerPage": 2,
            "hasNextPage": True,
            "hasPreviousPage": False,
        }

    def test_filters(self, client, books):
        response = client.get("/api/books", params={"genre": "FICTION", "minRating": 4.2})
        assert [book["title"] for book in response.json()["books"]] == ["Dune"]

    @pytest.mark.parametrize(
        "params",
        [
            {"sortBy": "isbn"},
            {"sortOrder": "sideways"},
            {"limit": 101},
            {"limit": 0},
            {"page": 0},
            {"page": 10**18},
            {"minRating": 6},
            {"minRating": 4, "maxRating": 3},
            {"status": "lost"},
        ],
    )
    def test_invalid_parameters(self, client, books, params):
        response = client.get("/api/books", params=params)
        assert response.status_code == 400

    def test_search_endpoint(self, client, books):
        response = client.get("/api/books/search/gats")

        assert response.status_code == 200
        body = response.json()
        assert body["searchQuery"] == "gats"
        assert [book["title"] for book in body["books"]] == ["The Great Gatsby"]
        assert body["pagination"]["itemsPerPage"] == 20

    def test_search_page_out_of_range(self, client, books):
        response = client.get("/api/books/search/gats", params={"page": 10**18})

        assert response.status_code == 400
        assert response.json()["message"].startswith("Page must be between")


class TestEdits:
    def test_patch_single_field(self, client, create_book):
        book = create_book()
        response = client.patch(
            f"/api/books/{book['id']}", json={"field": "title", "value": "Gatsby"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["book"]["title"] == "Gatsby"
        assert body["updatedField"] == "title"

    def test_patch_field_not_allowed(self, client, create_book):
        book = create_book()
        response = client.patch(
            f"/api/books/{book['id']}", json={"field": "checkedOutBy", "value": "user_x"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid field name"
        assert "title" in body["allowedFields"]
        assert "checkedOutBy" not in body["allowedFields"]

    def test_patch_invalid_value(self, client, create_book):
        book = create_book()
        response = client.patch(f"/api/books/{book['id']}", json={"field": "rating", "value": 9})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "rating"

    def test_patch_requires_value(self, client, create_book):
        book = create_book()
        response = client.patch(f"/api/books/{book['id']}", json={"field": "title"})
        assert response.status_code == 400

    def test_patch_status_to_checked_out(self, client, create_book):
        book = create_book()
        response = client.patch(
            f"/api/books/{book['id']}", json={"field": "status", "value": "checked_out"}
        )
        assert response.status_code == 409

    def test_put_multiple_fields(self, client, create_book):
        book = create_book()
        response = client.put(
            f"/api/books/{book['id']}", json={"title": "Gatsby", "publicationYear": 1926}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["book"]["title"] == "Gatsby"
        assert body["book"]["publicationYear"] == 1926
        assert body["updatedFields"] == ["title", "publicationYear"]

    def test_put_rejects_unknown_fields(self, client, create_book):
        book = create_book()
        response = client.put(
            f"/api/books/{book['id']}", json={"title": "Gatsby", "id": "book_x", "createdAt": "x"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid field names provided"
        assert body["invalidFields"] == ["id", "createdAt"]
        assert client.get(f"/api/books/{book['id']}").json()["book"]["title"] == book["title"]

    def test_put_empty_body(self, client, create_book):
        book = create_book()
        assert client.put(f"/api/books/{book['id']}", json={}).status_code == 400

    def test_put_invalid_value(self, client, create_book):
        book = create_book()
        response = client.put(f"/api/books/{book['id']}", json={"title": "Gatsby", "rating": 9})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert [error["field"] for error in body["errors"]] == ["rating"]
        assert client.get(f"/api/books/{book['id']}").json()["book"]["title"] == book["title"]

    def test_put_duplicate_isbn(self, client, create_book):
        create_book(isbn="9780000000001")
        book = create_book(isbn="9780000000002")

        response = client.put(f"/api/books/{book['id']}", json={"isbn": "978-0-000-00000-1"})
        assert response.status_code == 409


class TestLifecycle:
    def test_checkout_return_scenario(self, client, signup, create_book):
        _, token1 = signup("User One", "one@example.com")
        user2, token2 = signup("User Two", "two@example.com")
        book = create_book(isbn="978-0-000-00000-0")

        response = client.post(f"/api/books/{book['id']}/checkout", headers=auth_headers(token1))
        assert response.status_code == 200
        checked_out = response.json()["book"]
        assert checked_out["status"] == "checked_out"
        assert checked_out["checkedOutBy"]["name"] == "User One"
        assert checked_out["checkedOutBy"]["email"] == "one@example.com"
        assert checked_out["dueDate"] is not None

        response = client.post(f"/api/books/{book['id']}/return", headers=auth_headers(token2))
        assert response.status_code == 409

        response = client.post(f"/api/books/{book['id']}/return", headers=auth_headers(token1))
        assert response.status_code == 200
        returned = response.json()["book"]
        assert returned["status"] == "available"
        assert returned["checkedOutBy"] is None
        assert returned["dueDate"] is None

    def test_double_checkout(self, client, signup, create_book):
        _, token1 = signup("User One", "one@example.com")
        _, token2 = signup("User Two", "two@example.com")
        book = create_book()

        client.post(f"/api/books/{book['id']}/checkout", headers=auth_headers(token1))
        response = client.post(f"/api/books/{book['id']}/checkout", headers=auth_headers(token2))

        assert response.status_code == 409
        assert response.json() == {"message": "Book is not available for checkout"}

    def test_checkout_with_due_date(self, client, signup, create_book):
        _, token = signup()
        book = create_book()
        due = (datetime.now() + timedelta(days=3)).replace(microsecond=0)

        response = client.post(
            f"/api/books/{book['id']}/checkout",
            json={"dueDate": due.isoformat()},
            headers=auth_headers(token),
        )

        assert response.status_code == 200
        assert response.json()["book"]["dueDate"] == due.isoformat()

    def test_checkout_with_past_due_date(self, client, signup, create_book):
        _, token = signup()
        book = create_book()
        past = (datetime.now() - timedelta(days=1)).isoformat()

        response = client.post(
            f"/api/books/{book['id']}/checkout",
            json={"dueDate": past},
            headers=auth_headers(token),
        )
        assert response.status_code == 400

    def test_lifecycle_requires_token(self, client, create_book):
        book = create_book()

        assert client.post(f"/api/books/{book['id']}/checkout").status_code == 401
        assert client.post(f"/api/books/{book['id']}/return").status_code == 401
        response = client.post(f"/api/books/{book['id']}/reviews", json={"rating": 5})
        assert response.status_code == 401

    def test_checkout_missing_book(self, client, signup):
        _, token = signup()
        response = client.post(
            f"/api/books/{MISSING_BOOK_ID}/checkout", headers=auth_headers(token)
        )
        assert response.status_code == 404


class TestReviews:
    def test_add_review(self, client, signup, create_book):
        user, token = signup()
        book = create_book()

        response = client.post(
            f"/api/books/{book['id']}/reviews",
            json={"rating": 4, "comment": "Lovely prose"},
            headers=auth_headers(token),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Review added successfully"
        assert body["review"]["rating"] == 4
        assert body["review"]["user"] == {"id": user["id"], "name": "Jane Reader"}
        assert body["book"]["reviewCount"] == 1
        assert body["book"]["averageRating"] == 4

    @pytest.mark.parametrize("rating", [0, 6, 4.5, "5", None])
    def test_invalid_rating(self, client, signup, create_book, rating):
        _, token = signup()
        book = create_book()

        response = client.post(
            f"/api/books/{book['id']}/reviews", json={"rating": rating}, headers=auth_headers(token)
        )

        assert response.status_code == 400
        assert client.get(f"/api/books/{book['id']}").json()["book"]["reviews"] == []

    def test_review_replaced(self, client, signup, create_book):
        _, token = signup()
        book = create_book()
        url = f"/api/books/{book['id']}/reviews"

        client.post(url, json={"rating": 2}, headers=auth_headers(token))
        response = client.post(url, json={"rating": 5}, headers=auth_headers(token))

        book = response.json()["book"]
        assert book["reviewCount"] == 1
        assert book["averageRating"] == 5
