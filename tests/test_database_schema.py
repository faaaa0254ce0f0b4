"""
Tests for database schema and session management.

These tests verify:
1. Database tables are created correctly
2. Constraints are enforced by the database itself
3. Weak user references survive account deletion
4. Session management commits and rolls back properly
"""

import pytest
from sqlalchemy import inspect, select, text
from sqlalchemy.exc import IntegrityError

from book_club_api.database import (
    Book,
    BookStatusEnum,
    DatabaseError,
    DatabaseManager,
    Review,
    User,
    safe_query,
)


def make_user(suffix: str = "1", **overrides) -> User:
    data = {
        "id": f"user_{suffix}",
        "name": "Jane Reader",
        "email": f"jane{suffix}@example.com",
        "password_hash": "$2b$04$placeholder",
    }
    data.update(overrides)
    return User(**data)


def make_book(suffix: str = "1", **overrides) -> Book:
    data = {
        "id": f"book_{suffix}",
        "title": "Dune",
        "author": "Frank Herbert",
        "genre": "Science Fiction",
        "publication_year": 1965,
        "description": "Politics and prophecy.",
        "total_pages": 412,
        "isbn": f"978044117271{suffix}",
    }
    data.update(overrides)
    return Book(**data)


class TestDatabaseSchema:
    """Test database schema creation and basic operations."""

    def test_tables_created(self, test_db_session):
        tables = inspect(test_db_session.bind).get_table_names()
        assert set(tables) == {"users", "books", "reviews"}

    def test_book_defaults(self, test_db_session):
        test_db_session.add(make_book())
        test_db_session.commit()

        book = test_db_session.get(Book, "book_1")
        assert book.status == BookStatusEnum.AVAILABLE
        assert book.rating == 0
        assert book.language == "English"
        assert book.created_at is not None

    def test_email_is_normalized(self, test_db_session):
        test_db_session.add(make_user(email="  Jane@Example.COM "))
        test_db_session.commit()

        assert test_db_session.get(User, "user_1").email == "jane@example.com"

    def test_unique_isbn(self, test_db_session):
        test_db_session.add(make_book("1"))
        test_db_session.commit()

        test_db_session.add(make_book("2", isbn="9780441172711"))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_unique_email(self, test_db_session):
        test_db_session.add(make_user("1", email="jane@example.com"))
        test_db_session.commit()

        test_db_session.add(make_user("2", email="jane@example.com"))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"rating": 5.5},
            {"total_pages": 0},
            {"publication_year": 999},
            {"id": "not-a-book-id"},
        ],
    )
    def test_book_check_constraints(self, test_db_session, overrides):
        test_db_session.add(make_book(**overrides))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_one_review_per_user_per_book(self, test_db_session):
        test_db_session.add_all([make_user(), make_book()])
        test_db_session.add(Review(id="review_1", book_id="book_1", user_id="user_1", rating=4))
        test_db_session.commit()

        test_db_session.add(Review(id="review_2", book_id="book_1", user_id="user_1", rating=2))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_review_rating_range(self, test_db_session):
        test_db_session.add(make_book())
        test_db_session.add(Review(id="review_1", book_id="book_1", user_id="user_1", rating=6))
        with pytest.raises(IntegrityError):
            test_db_session.commit()
        test_db_session.rollback()

    def test_reviews_deleted_with_book(self, test_db_session):
        book = make_book()
        book.reviews.append(Review(id="review_1", user_id="user_1", rating=4))
        test_db_session.add(book)
        test_db_session.commit()

        test_db_session.delete(book)
        test_db_session.commit()

        assert test_db_session.execute(select(Review)).scalars().all() == []

    def test_user_references_are_weak(self, test_db_session):
        user = make_user()
        book = make_book(
            status=BookStatusEnum.CHECKED_OUT,
            checked_out_by="user_1",
        )
        book.reviews.append(Review(id="review_1", user_id="user_1", rating=5))
        test_db_session.add_all([user, book])
        test_db_session.commit()

        assert book.checked_out_user.name == "Jane Reader"

        test_db_session.delete(user)
        test_db_session.commit()
        test_db_session.expire_all()

        book = test_db_session.get(Book, "book_1")
        assert book.checked_out_by == "user_1"
        assert book.checked_out_user is None
        assert book.reviews[0].user_id == "user_1"
        assert book.reviews[0].user is None


class TestSessionManagement:
    def test_sessions_share_in_memory_database(self, db_manager):
        with db_manager.create_session() as session:
            session.add(make_user())
            session.commit()

        with db_manager.create_session() as session:
            assert session.get(User, "user_1") is not None

    def test_file_database_gives_each_session_its_own_connection(self, tmp_path):
        manager = DatabaseManager(f"sqlite:///{tmp_path / 'club.db'}")
        manager.init_database()

        first = manager.create_session()
        second = manager.create_session()
        try:
            first.add(make_user())
            first.flush()

            # Uncommitted work stays inside its own transaction
            assert second.get(User, "user_1") is None
            assert first.connection().connection.dbapi_connection is not (
                second.connection().connection.dbapi_connection
            )

            first.rollback()
            assert second.get(User, "user_1") is None
        finally:
            first.close()
            second.close()
            manager.close()

    def test_verify_connection(self, db_manager):
        assert db_manager.verify_connection() is True

    def test_init_database_can_drop_existing(self, db_manager):
        with db_manager.create_session() as session:
            session.add(make_user())
            session.commit()

        db_manager.init_database(drop_existing=True)

        with db_manager.create_session() as session:
            assert session.get(User, "user_1") is None

    def test_safe_query_wraps_errors(self, test_db_session):
        with pytest.raises(DatabaseError, match="Failed to read"):
            safe_query(
                test_db_session,
                lambda s: s.execute(text("SELECT * FROM missing_table")),
                "Failed to read",
            )

    def test_close_disposes_engine(self):
        manager = DatabaseManager("sqlite://")
        manager.init_database()
        manager.close()

        # A fresh engine is created on next use
        manager.init_database()
        assert manager.verify_connection() is True
        manager.close()
