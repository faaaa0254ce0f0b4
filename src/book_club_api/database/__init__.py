"""
Database package for the Book Club API.

This package provides:
- SQLAlchemy schema definitions (schema.py)
- Session management and connection handling (session.py)
- Repositories turning rows into API models (book_repository.py, user_repository.py)

The web layer talks only to repositories; it never builds queries itself.
"""

from .book_repository import BookQueryParams, BookRepository, BookSortOptions, SortOrder
from .repository import (
    MAX_LIMIT,
    MAX_PAGE,
    BaseRepository,
    DuplicateError,
    InvalidCredentialError,
    InvalidIdError,
    InvalidStateError,
    NotFoundError,
    NotOwnerError,
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    RepositoryException,
    ValidationFailedError,
)
from .schema import Base, Book, BookStatusEnum, Review, User
from .session import DatabaseError, DatabaseManager, safe_commit, safe_query
from .user_repository import UserRepository

__all__ = [
    "MAX_LIMIT",
    "MAX_PAGE",
    "Base",
    "BaseRepository",
    "Book",
    "BookQueryParams",
    "BookRepository",
    "BookSortOptions",
    "BookStatusEnum",
    "DatabaseError",
    "DatabaseManager",
    "DuplicateError",
    "InvalidCredentialError",
    "InvalidIdError",
    "InvalidStateError",
    "NotFoundError",
    "NotOwnerError",
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "RepositoryException",
    "Review",
    "SortOrder",
    "User",
    "UserRepository",
    "ValidationFailedError",
    "safe_commit",
    "safe_query",
]
