"""
Book and review models for the Book Club API.

Input models carry the per-field rules (lengths, ranges, formats) and are
evaluated before anything reaches the database. The ``Book`` response model
adds the derived fields clients rely on:
- averageRating: mean of review ratings, or the stored rating when unreviewed
- reviewCount: number of reviews
- isAvailable: status == available
"""

import math
import re
from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import Field, StringConstraints, computed_field, field_validator, model_validator

from .base import CamelModel

ISBN_PATTERN = re.compile(r"^(97[89])?\d{9}[\dX]$", re.IGNORECASE)
COVER_IMAGE_PATTERN = re.compile(r"^https?://.+\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)

# How far ahead of the current year a publication year may lie
PUBLICATION_YEAR_LEAD = 5


def max_publication_year() -> int:
    return datetime.now().year + PUBLICATION_YEAR_LEAD


def validate_publication_year(value: int | None) -> int | None:
    latest = max_publication_year()
    if value is not None and value > latest:
        raise ValueError(f"Publication year cannot be later than {latest}")
    return value


Tag = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=30)]


class BookStatus(str, Enum):
    """Enumeration of possible book statuses."""

    AVAILABLE = "available"
    CHECKED_OUT = "checked_out"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


def normalize_isbn(value: str) -> str:
    """Strip hyphens and spaces and validate against the ISBN-10/13 shape."""
    normalized = re.sub(r"[-\s]", "", value).upper()
    if not ISBN_PATTERN.match(normalized):
        raise ValueError("Please provide a valid ISBN-10 or ISBN-13")
    return normalized


def validate_cover_image(value: str | None) -> str | None:
    if not value:
        return None
    if not COVER_IMAGE_PATTERN.match(value):
        raise ValueError("Cover image must be a valid URL pointing to an image file")
    return value


class BookCreate(CamelModel):
    """Payload for adding a book to the catalog."""

    title: str = Field(..., min_length=1, max_length=200, examples=["The Great Gatsby"])
    author: str = Field(..., min_length=1, max_length=100, examples=["F. Scott Fitzgerald"])
    genre: str = Field(..., min_length=1, max_length=50, examples=["Fiction"])
    publication_year: int = Field(..., ge=1000, examples=[1925])
    description: str = Field(..., min_length=1, max_length=1000)
    status: BookStatus = BookStatus.AVAILABLE
    rating: float = Field(default=0, ge=0, le=5)
    total_pages: int = Field(..., ge=1, examples=[180])
    isbn: str = Field(..., examples=["978-0-7432-7356-5", "0743273567"])
    cover_image: str | None = Field(
        default=None, examples=["https://covers.example.com/gatsby.jpg"]
    )
    language: str = Field(default="English", max_length=30)
    publisher: str | None = Field(default=None, max_length=100)
    tags: list[Tag] = Field(default_factory=list)

    @field_validator("isbn")
    @classmethod
    def check_isbn(cls, v: str) -> str:
        return normalize_isbn(v)

    @field_validator("cover_image")
    @classmethod
    def check_cover_image(cls, v: str | None) -> str | None:
        return validate_cover_image(v)

    @field_validator("publication_year")
    @classmethod
    def check_publication_year(cls, v: int) -> int:
        return validate_publication_year(v)


class BookUpdate(CamelModel):
    """
    Partial update restricted to the editable fields.

    Only keys present in the payload are applied (``exclude_unset``).
    ``coverImage`` may be cleared with null; every other field must hold a value.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    author: str | None = Field(default=None, min_length=1, max_length=100)
    genre: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    status: BookStatus | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    cover_image: str | None = None
    publication_year: int | None = Field(default=None, ge=1000)
    total_pages: int | None = Field(default=None, ge=1)
    isbn: str | None = None

    @field_validator("isbn")
    @classmethod
    def check_isbn(cls, v: str | None) -> str | None:
        return normalize_isbn(v) if v is not None else v

    @field_validator("cover_image")
    @classmethod
    def check_cover_image(cls, v: str | None) -> str | None:
        return validate_cover_image(v)

    @field_validator("publication_year")
    @classmethod
    def check_publication_year(cls, v: int | None) -> int | None:
        return validate_publication_year(v)

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "BookUpdate":
        for name in self.model_fields_set:
            if name != "cover_image" and getattr(self, name) is None:
                raise ValueError(f"{type(self).model_fields[name].alias} cannot be null")
        return self


# Field names accepted by PATCH/PUT, as they appear in JSON
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "author",
        "genre",
        "description",
        "status",
        "rating",
        "coverImage",
        "publicationYear",
        "totalPages",
        "isbn",
    }
)


class ReviewCreate(CamelModel):
    """A member's rating (integer 1-5) and optional comment."""

    rating: int = Field(..., strict=True, ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)


class UserRef(CamelModel):
    """Populated reference to a user; name/email are null if the account is gone."""

    id: str
    name: str | None = None
    email: str | None = None


class ReviewerRef(CamelModel):
    id: str
    name: str | None = None


class Review(CamelModel):
    id: str
    user: ReviewerRef
    rating: int
    comment: str | None = None
    review_date: datetime


class Book(CamelModel):
    """
    Represents a book in the catalog as returned by the API.

    References to users are populated: ``checkedOutBy`` carries the holder's
    name and email and each review carries the reviewer's name.
    """

    id: str
    title: str
    author: str
    genre: str
    publication_year: int
    description: str
    status: BookStatus
    rating: float
    total_pages: int
    isbn: str
    cover_image: str | None = None
    language: str = "English"
    publisher: str | None = None
    tags: list[str] = Field(default_factory=list)
    checked_out_by: UserRef | None = None
    checked_out_date: datetime | None = None
    due_date: datetime | None = None
    reviews: list[Review] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @computed_field(alias="averageRating")
    @property
    def average_rating(self) -> float:
        """Mean review rating to one decimal, falling back to the stored rating."""
        if self.reviews:
            total = sum(review.rating for review in self.reviews)
            return math.floor(total / len(self.reviews) * 10 + 0.5) / 10
        return self.rating or 0

    @computed_field(alias="reviewCount")
    @property
    def review_count(self) -> int:
        return len(self.reviews)

    @computed_field(alias="isAvailable")
    @property
    def is_available(self) -> bool:
        return self.status == BookStatus.AVAILABLE
