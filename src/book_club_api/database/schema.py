"""
SQLAlchemy database schema for the Book Club API.

These tables back the repositories in this package:
1. ``users`` - club members and their credential hashes
2. ``books`` - the catalog, including the current checkout holder
3. ``reviews`` - at most one review per (book, user)

References from books and reviews to users are weak: they store the user id
without a foreign key, so deleting an account leaves them in place. The
``checked_out_user`` and ``user`` relationships are view-only joins that
resolve to None when the account no longer exists.
"""

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, validates

Base = declarative_base()


class BookStatusEnum(str, enum.Enum):
    """Database enum for book status."""

    AVAILABLE = "available"
    CHECKED_OUT = "checked_out"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


class User(Base):
    """
    Users table - club members.

    The password column only ever holds a bcrypt hash.
    """

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index("idx_user_email", "email"),
        CheckConstraint("id LIKE 'user_%'", name="check_user_id_format"),
    )

    @validates("email")
    def normalize_email(self, key, value):  # noqa: ARG002
        return value.strip().lower() if value else value


class Book(Base):
    """
    Books table - the club's catalog.

    ``checked_out_by`` is set exactly when ``status`` is checked_out; the
    repository only changes the two together.
    """

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    title = Column(String(200), nullable=False)
    author = Column(String(100), nullable=False)
    genre = Column(String(50), nullable=False)
    publication_year = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(
        Enum(BookStatusEnum, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BookStatusEnum.AVAILABLE,
    )
    rating = Column(Float, nullable=False, default=0.0)
    total_pages = Column(Integer, nullable=False)
    isbn = Column(String(13), nullable=False, unique=True)
    cover_image = Column(String(500), nullable=True)
    language = Column(String(30), nullable=False, default="English")
    publisher = Column(String(100), nullable=True)

    # JSON array stored as text for SQLite compatibility
    tags = Column(Text, nullable=True)

    # Current checkout (weak reference to users.id)
    checked_out_by = Column(String(50), nullable=True)
    checked_out_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    reviews = relationship(
        "Review",
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="Review.review_date",
    )
    checked_out_user = relationship(
        "User",
        primaryjoin="foreign(Book.checked_out_by) == User.id",
        viewonly=True,
        uselist=False,
    )

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_author", "author"),
        Index("idx_book_genre", "genre"),
        Index("idx_book_status", "status"),
        Index("idx_book_rating", "rating"),
        Index("idx_book_publication_year", "publication_year"),
        Index("idx_book_checked_out_by", "checked_out_by"),
        CheckConstraint("id LIKE 'book_%'", name="check_book_id_format"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="check_book_rating_range"),
        CheckConstraint("total_pages >= 1", name="check_total_pages_positive"),
        CheckConstraint("publication_year >= 1000", name="check_publication_year_valid"),
    )


class Review(Base):
    """
    Reviews table - one row per (book, user).

    Adding a second review for the same pair replaces the first.
    """

    __tablename__ = "reviews"

    id = Column(String(50), primary_key=True)
    book_id = Column(String(50), ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(50), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    review_date = Column(DateTime, nullable=False, default=datetime.now)

    book = relationship("Book", back_populates="reviews")
    user = relationship(
        "User",
        primaryjoin="foreign(Review.user_id) == User.id",
        viewonly=True,
        uselist=False,
    )

    __table_args__ = (
        Index("idx_review_book", "book_id"),
        Index("idx_review_user", "user_id"),
        UniqueConstraint("book_id", "user_id", name="unique_review_per_user"),
        CheckConstraint("id LIKE 'review_%'", name="check_review_id_format"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="check_review_rating_range"),
    )
