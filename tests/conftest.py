"""Test configuration and fixtures for the Book Club API.

Fixtures come in three layers:
1. Storage - an in-memory SQLite database per test
2. Repositories - book and user repositories bound to that database
3. HTTP - a TestClient for an app built by ``create_app`` on the same storage

Passwords are hashed with the minimum bcrypt cost to keep the suite fast.
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from book_club_api.config import Settings, reset_config
from book_club_api.database import BookRepository, DatabaseManager, UserRepository
from book_club_api.models import BookCreate, UserSignup
from book_club_api.server import create_app

TEST_JWT_SECRET = "test-secret-for-book-club-tokens-0123456789"
TEST_PASSWORD = "secret123"


# === Storage Fixtures ===


@pytest.fixture
def db_manager() -> Generator[DatabaseManager, None, None]:
    """Provide a database manager over a fresh in-memory database."""
    manager = DatabaseManager("sqlite://")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def test_db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


# === Configuration Fixtures ===


@pytest.fixture
def test_settings(tmp_path: Path) -> Generator[Settings, None, None]:
    """Provide isolated settings: in-memory database, fast hashing, known secret."""
    reset_config()

    settings = Settings(
        _env_file=None,
        database_path=tmp_path / "book_club.db",
        database_url="sqlite://",
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        environment="development",
        log_level="DEBUG",
    )

    yield settings

    reset_config()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide a clean environment without BOOK_CLUB_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("BOOK_CLUB_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# === Repository Fixtures ===


@pytest.fixture
def book_repo(test_db_session: Session) -> BookRepository:
    return BookRepository(test_db_session)


@pytest.fixture
def user_repo(test_db_session: Session) -> UserRepository:
    return UserRepository(test_db_session, bcrypt_rounds=4)


def make_book(**overrides) -> BookCreate:
    """Build a valid BookCreate, overriding any field."""
    data = {
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "genre": "Fiction",
        "publication_year": 1925,
        "description": "A portrait of the Jazz Age on Long Island.",
        "total_pages": 180,
        "isbn": "978-0-7432-7356-5",
        "rating": 4.0,
    }
    data.update(overrides)
    return BookCreate(**data)


@pytest.fixture
def sample_user(user_repo: UserRepository):
    return user_repo.create(
        UserSignup(name="Jane Reader", email="jane@example.com", password=TEST_PASSWORD)
    )


@pytest.fixture
def other_user(user_repo: UserRepository):
    return user_repo.create(
        UserSignup(name="John Borrower", email="john@example.com", password=TEST_PASSWORD)
    )


@pytest.fixture
def sample_book(book_repo: BookRepository):
    return book_repo.create(make_book())


# === HTTP Fixtures ===


@pytest.fixture
def app(test_settings: Settings, db_manager: DatabaseManager) -> FastAPI:
    return create_app(test_settings, db_manager)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    # Unhandled errors come back as 500 responses instead of being re-raised
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def signup(client: TestClient) -> Callable[..., tuple[dict, str]]:
    """Create an account over HTTP and return (user, token)."""

    def _signup(name: str = "Jane Reader", email: str = "jane@example.com") -> tuple[dict, str]:
        response = client.post(
            "/api/auth/signup", json={"name": name, "email": email, "password": TEST_PASSWORD}
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["user"], body["token"]

    return _signup


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def book_payload(**overrides) -> dict:
    """JSON body for POST /api/books."""
    payload = {
        "title": "The Great Gatsby",
        "author": "F. Scott Fitzgerald",
        "genre": "Fiction",
        "publicationYear": 1925,
        "description": "A portrait of the Jazz Age on Long Island.",
        "totalPages": 180,
        "isbn": "978-0-7432-7356-5",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_book(client: TestClient) -> Callable[..., dict]:
    """Create a book over HTTP and return its JSON."""

    def _create(**overrides) -> dict:
        response = client.post("/api/books", json=book_payload(**overrides))
        assert response.status_code == 201, response.text
        return response.json()["book"]

    return _create
