"""
Book catalog routes.

Listing and detail reads are public, as are catalog edits. Checkout, return
and reviews act on behalf of the bearer of the access token.
"""

import logging
from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..database import MAX_LIMIT, BookQueryParams, BookSortOptions, SortOrder
from ..models import UPDATABLE_FIELDS, Book, BookCreate, BookStatus, BookUpdate, ReviewCreate
from ..models.base import CamelModel
from ..observability.decorators import trace_operation
from ..observability.metrics import record_lifecycle_event
from .dependencies import BookRepoDep, IdentityDep
from .errors import validation_error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"])

ALLOWED_FIELDS = sorted(UPDATABLE_FIELDS)


class FieldUpdate(CamelModel):
    """Body of a single-field PATCH."""

    field: str
    value: Any


class CheckoutRequest(CamelModel):
    due_date: datetime | None = None


def _dump(book: Book) -> dict:
    return book.model_dump(mode="json", by_alias=True)


@router.get("")
def list_books(
    books: BookRepoDep,
    genre: str | None = None,
    author: str | None = None,
    status: BookStatus | None = None,
    search: str | None = None,
    min_rating: Annotated[float | None, Query(alias="minRating", ge=0, le=5)] = None,
    max_rating: Annotated[float | None, Query(alias="maxRating", ge=0, le=5)] = None,
    sort_by: Annotated[BookSortOptions, Query(alias="sortBy")] = BookSortOptions.CREATED_AT,
    sort_order: Annotated[SortOrder, Query(alias="sortOrder")] = SortOrder.DESC,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_LIMIT)] = 10,
):
    result = books.search(
        BookQueryParams(
            genre=genre,
            author=author,
            status=status,
            search=search,
            min_rating=min_rating,
            max_rating=max_rating,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    )
    return {
        "message": "Books retrieved successfully",
        "books": [_dump(book) for book in result.items],
        "pagination": result.pagination.model_dump(by_alias=True),
    }


@router.get("/search/{query}")
def search_books(
    query: str,
    books: BookRepoDep,
    genre: str | None = None,
    author: str | None = None,
    status: BookStatus | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_LIMIT)] = 20,
):
    result = books.search_books(
        query, genre=genre, author=author, status=status, page=page, limit=limit
    )
    return {
        "message": "Books search completed successfully",
        "books": [_dump(book) for book in result.items],
        "pagination": result.pagination.model_dump(by_alias=True),
        "searchQuery": query,
    }


@router.get("/{book_id}")
def get_book(book_id: str, books: BookRepoDep):
    return {"message": "Book retrieved successfully", "book": _dump(books.get_by_id(book_id))}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_book(payload: BookCreate, books: BookRepoDep):
    book = books.create(payload)
    logger.info("Added book %s (%s)", book.id, book.isbn)
    return {"message": "Book created successfully", "book": _dump(book)}


@router.patch("/{book_id}")
def update_book_field(book_id: str, payload: FieldUpdate, books: BookRepoDep):
    if payload.field not in UPDATABLE_FIELDS:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid field name", "allowedFields": ALLOWED_FIELDS},
        )

    try:
        changes = BookUpdate.model_validate({payload.field: payload.value})
    except ValidationError as e:
        return validation_error_response(e)

    book = books.update(book_id, changes)
    return {
        "message": "Book updated successfully",
        "book": _dump(book),
        "updatedField": payload.field,
    }


@router.put("/{book_id}")
def update_book(book_id: str, updates: Annotated[dict[str, Any], Body()], books: BookRepoDep):
    invalid_fields = [field for field in updates if field not in UPDATABLE_FIELDS]
    if invalid_fields:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Invalid field names provided",
                "invalidFields": invalid_fields,
                "allowedFields": ALLOWED_FIELDS,
            },
        )
    if not updates:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "No fields provided for update", "allowedFields": ALLOWED_FIELDS},
        )

    try:
        changes = BookUpdate.model_validate(updates)
    except ValidationError as e:
        return validation_error_response(e)

    book = books.update(book_id, changes)
    return {
        "message": "Book updated successfully",
        "book": _dump(book),
        "updatedFields": list(updates),
    }


@router.delete("/{book_id}")
def delete_book(book_id: str, books: BookRepoDep):
    books.delete(book_id)
    logger.info("Deleted book %s", book_id)
    return {"message": "Book deleted successfully"}


@router.post("/{book_id}/checkout")
@trace_operation("checkout_book")
def checkout_book(
    book_id: str,
    books: BookRepoDep,
    identity: IdentityDep,
    payload: Annotated[CheckoutRequest | None, Body()] = None,
):
    due_date = payload.due_date if payload else None
    book = books.checkout_book(book_id, identity.user_id, due_date=due_date)
    record_lifecycle_event("checkout", book.genre)
    logger.info("Book %s checked out by %s", book_id, identity.user_id)
    return {"message": "Book checked out successfully", "book": _dump(book)}


@router.post("/{book_id}/return")
@trace_operation("return_book")
def return_book(book_id: str, books: BookRepoDep, identity: IdentityDep):
    book = books.return_book(book_id, identity.user_id)
    record_lifecycle_event("return", book.genre)
    logger.info("Book %s returned by %s", book_id, identity.user_id)
    return {"message": "Book returned successfully", "book": _dump(book)}


@router.post("/{book_id}/reviews", status_code=status.HTTP_201_CREATED)
@trace_operation("add_review")
def add_review(book_id: str, payload: ReviewCreate, books: BookRepoDep, identity: IdentityDep):
    book, review = books.add_review(
        book_id, identity.user_id, payload.rating, comment=payload.comment
    )
    record_lifecycle_event("review", book.genre)
    return {
        "message": "Review added successfully",
        "book": _dump(book),
        "review": review.model_dump(mode="json", by_alias=True),
    }
