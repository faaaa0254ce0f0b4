"""
Repository pattern implementation for the Book Club API.

Repositories keep SQL out of the route handlers:

1. **Separation**: routes deal with HTTP, repositories with storage
2. **Testability**: repositories run against an in-memory SQLite session
3. **Consistency**: every lookup validates ids and raises the same errors
4. **Serialization**: methods return Pydantic models ready for JSON

The exceptions defined here form the domain error taxonomy; the API layer
maps each one to an HTTP status code.
"""

import math
import re
import uuid
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models.base import CamelModel
from .schema import Base
from .session import safe_commit, safe_query

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class InvalidIdError(RepositoryException):
    """Raised when an identifier is not well formed."""


class DuplicateError(RepositoryException):
    """Raised when a unique value (isbn, email) is already taken."""


class InvalidStateError(RepositoryException):
    """Raised when a lifecycle transition is attempted from the wrong state."""


class NotOwnerError(RepositoryException):
    """Raised when a user acts on a checkout they do not hold."""


class ValidationFailedError(RepositoryException):
    """Raised when a value breaks a field rule the schemas could not check."""


class InvalidCredentialError(RepositoryException):
    """Raised when a password does not verify."""


MAX_LIMIT = 100

# Keeps (page - 1) * limit inside SQLite's signed 64-bit OFFSET
MAX_PAGE = 1_000_000


class PaginationParams(BaseModel):
    """1-indexed page number and page size."""

    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.limit

    def validate_params(self) -> None:
        if self.page < 1 or self.page > MAX_PAGE:
            raise ValidationFailedError(f"Page must be between 1 and {MAX_PAGE}")
        if self.limit < 1 or self.limit > MAX_LIMIT:
            raise ValidationFailedError(f"Limit must be between 1 and {MAX_LIMIT}")


class PaginationMeta(CamelModel):
    """Pagination envelope returned next to every list of books."""

    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, pagination: PaginationParams, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / pagination.limit)
        return cls(
            current_page=pagination.page,
            total_pages=total_pages,
            total_items=total,
            items_per_page=pagination.limit,
            has_next_page=pagination.page < total_pages,
            has_previous_page=pagination.page > 1,
        )


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """One page of results plus its pagination metadata."""

    items: list[ResponseSchemaType] = Field(default_factory=list)
    pagination: PaginationMeta


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """
    Abstract base repository providing the shared lookups.

    Subclasses declare the SQLAlchemy model, its id prefix and how a row is
    turned into a response model.
    """

    id_prefix: str = ""

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @abstractmethod
    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        """Convert database model to Pydantic response model."""

    @property
    def entity_name(self) -> str:
        return self.model_class.__name__

    def generate_id(self, prefix: str | None = None) -> str:
        return f"{prefix or self.id_prefix}_{uuid.uuid4().hex}"

    def _loader_options(self) -> tuple:
        """Eager-loading options applied whenever rows are fetched."""
        return ()

    def validate_id(self, id: str) -> str:
        """
        Check an identifier has this entity's shape.

        Raises:
            InvalidIdError: If the id is malformed
        """
        if not re.fullmatch(rf"{self.id_prefix}_[0-9a-f]{{32}}", id or ""):
            raise InvalidIdError(f"Invalid {self.entity_name.lower()} ID format")
        return id

    def _get_db_obj(self, id: str) -> ModelType:
        """
        Load a row by id.

        Raises:
            InvalidIdError: If the id is malformed
            NotFoundError: If no row has this id
        """
        self.validate_id(id)
        query = (
            select(self.model_class)
            .where(self.model_class.id == id)
            .options(*self._loader_options())
            .execution_options(populate_existing=True)
        )
        db_obj = safe_query(
            self.session,
            lambda s: s.execute(query).unique().scalar_one_or_none(),
            f"Failed to get {self.entity_name} by ID",
        )
        if db_obj is None:
            raise NotFoundError(f"{self.entity_name} not found")
        return db_obj

    def get_by_id(self, id: str) -> ResponseSchemaType:
        """
        Get entity by ID.

        Raises:
            InvalidIdError: If the id is malformed
            NotFoundError: If not found
        """
        return self._to_response_model(self._get_db_obj(id))

    def delete(self, id: str) -> None:
        """
        Delete entity by ID.

        Raises:
            InvalidIdError: If the id is malformed
            NotFoundError: If not found
        """
        db_obj = self._get_db_obj(id)
        self.session.delete(db_obj)
        safe_commit(self.session, f"delete {self.entity_name}")

    def _paginate_query(
        self, query, pagination: PaginationParams
    ) -> PaginatedResponse[ResponseSchemaType]:
        """Count the full result, then fetch one page of it."""
        pagination.validate_params()

        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (
            safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                "Failed to count in pagination",
            )
            or 0
        )

        query = (
            query.offset(pagination.offset)
            .limit(pagination.limit)
            .options(*self._loader_options())
            .execution_options(populate_existing=True)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).unique().scalars().all(),
            "Failed to get paginated results",
        )

        return PaginatedResponse(
            items=[self._to_response_model(item) for item in results],
            pagination=PaginationMeta.build(pagination, total),
        )
