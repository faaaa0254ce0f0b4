"""
Book repository implementation for the Book Club API.

This repository owns everything that reads or changes a book:

1. **Catalog queries**: filtering, free-text search, sorting and pagination
2. **Lifecycle**: checkout, return and reviews
3. **Edits**: create, allow-listed field updates and delete
4. **Reading lists**: books a member currently holds

Checkout and return run as single conditional UPDATE statements, so two
members racing for the same copy cannot both succeed. References to users are
weak; they are resolved when a book is turned into its response model.

Note: all datetimes are naive local time, matching the rest of the schema.
"""

import enum
import json
from datetime import datetime, timedelta

from pydantic import BaseModel, Field
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from ..database.schema import Book as BookDB
from ..database.schema import BookStatusEnum
from ..database.schema import Review as ReviewDB
from ..database.schema import User as UserDB
from ..database.session import safe_commit, safe_query
from ..models.book import Book as BookModel
from ..models.book import BookCreate, BookStatus, BookUpdate, ReviewerRef, UserRef
from ..models.book import Review as ReviewModel
from .repository import (
    BaseRepository,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    NotOwnerError,
    PaginatedResponse,
    PaginationParams,
    ValidationFailedError,
)

# Default loan period when a checkout does not name a due date
LOAN_PERIOD_DAYS = 14

MAX_COMMENT_LENGTH = 500


class BookSortOptions(str, enum.Enum):
    """Sortable fields, named as clients send them in ``sortBy``."""

    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    TITLE = "title"
    AUTHOR = "author"
    GENRE = "genre"
    PUBLICATION_YEAR = "publicationYear"
    RATING = "rating"
    TOTAL_PAGES = "totalPages"
    STATUS = "status"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class BookQueryParams(BaseModel):
    """
    Filter, sort and paging options for the catalog listing.

    Every filter is optional; the ones given are ANDed together.
    """

    genre: str | None = None  # Genre contains (case-insensitive)
    author: str | None = None  # Author contains (case-insensitive)
    status: BookStatus | None = None  # Exact status
    min_rating: float | None = Field(default=None, ge=0, le=5)
    max_rating: float | None = Field(default=None, ge=0, le=5)
    search: str | None = None  # Title, author or description contains
    sort_by: BookSortOptions = BookSortOptions.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    page: int = 1
    limit: int = 10


SORT_COLUMNS = {
    BookSortOptions.CREATED_AT: BookDB.created_at,
    BookSortOptions.UPDATED_AT: BookDB.updated_at,
    BookSortOptions.TITLE: BookDB.title,
    BookSortOptions.AUTHOR: BookDB.author,
    BookSortOptions.GENRE: BookDB.genre,
    BookSortOptions.PUBLICATION_YEAR: BookDB.publication_year,
    BookSortOptions.RATING: BookDB.rating,
    BookSortOptions.TOTAL_PAGES: BookDB.total_pages,
    BookSortOptions.STATUS: BookDB.status,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, term: str):
    """Case-insensitive literal substring match."""
    return column.ilike(f"%{_escape_like(term)}%", escape="\\")


class BookRepository(BaseRepository[BookDB, BookModel]):
    """
    Repository for book data access.

    - Read methods back the catalog listing, search and detail routes
    - Lifecycle methods back checkout, return and reviews
    - All methods return Pydantic models with user references populated
    """

    id_prefix = "book"

    @property
    def model_class(self):
        return BookDB

    def _loader_options(self) -> tuple:
        return (
            joinedload(BookDB.checked_out_user),
            selectinload(BookDB.reviews).joinedload(ReviewDB.user),
        )

    def _build_filters(self, params: BookQueryParams) -> list:
        if (
            params.min_rating is not None
            and params.max_rating is not None
            and params.min_rating > params.max_rating
        ):
            raise ValidationFailedError("minRating cannot be greater than maxRating")

        filters = []

        if params.genre:
            filters.append(_contains(BookDB.genre, params.genre))

        if params.author:
            filters.append(_contains(BookDB.author, params.author))

        if params.status:
            filters.append(BookDB.status == BookStatusEnum(params.status.value))

        if params.min_rating is not None:
            filters.append(BookDB.rating >= params.min_rating)

        if params.max_rating is not None:
            filters.append(BookDB.rating <= params.max_rating)

        # General search across title, author and description
        if params.search:
            filters.append(
                or_(
                    _contains(BookDB.title, params.search),
                    _contains(BookDB.author, params.search),
                    _contains(BookDB.description, params.search),
                )
            )

        return filters

    def search(self, params: BookQueryParams) -> PaginatedResponse[BookModel]:
        """
        List books matching the given filters.

        Powers ``GET /api/books?genre=Fiction&minRating=4&sortBy=title``.

        Args:
            params: Filters, sort and pagination

        Returns:
            Paginated response with matching books

        Raises:
            ValidationFailedError: If the rating bounds cross or paging is out of range
        """
        query = select(BookDB)

        filters = self._build_filters(params)
        if filters:
            query = query.where(and_(*filters))

        sort_field = SORT_COLUMNS[params.sort_by]
        query = query.order_by(
            sort_field.desc() if params.sort_order == SortOrder.DESC else sort_field.asc(),
            BookDB.id.asc(),
        )

        return self._paginate_query(query, PaginationParams(page=params.page, limit=params.limit))

    def search_books(
        self,
        query: str,
        genre: str | None = None,
        author: str | None = None,
        status: BookStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaginatedResponse[BookModel]:
        """
        Free-text search, best rated first.

        Powers ``GET /api/books/search/{query}``.
        """
        term = query.strip()
        if not term:
            raise ValidationFailedError("Search query is required")

        params = BookQueryParams(search=term, genre=genre, author=author, status=status)
        statement = (
            select(BookDB)
            .where(and_(*self._build_filters(params)))
            .order_by(BookDB.rating.desc(), BookDB.title.asc(), BookDB.id.asc())
        )

        return self._paginate_query(statement, PaginationParams(page=page, limit=limit))

    def _isbn_taken(self, isbn: str, exclude_id: str | None = None) -> bool:
        query = select(func.count()).select_from(BookDB).where(BookDB.isbn == isbn)
        if exclude_id:
            query = query.where(BookDB.id != exclude_id)
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check ISBN"
        )
        return count > 0

    def create(self, data: BookCreate) -> BookModel:
        """
        Add a book to the catalog.

        Raises:
            DuplicateError: If the ISBN is already in the catalog
            ValidationFailedError: If the book is created as checked out
        """
        if data.status == BookStatus.CHECKED_OUT:
            raise ValidationFailedError("A new book cannot start out checked out")

        if self._isbn_taken(data.isbn):
            raise DuplicateError("A book with this ISBN already exists")

        db_book = BookDB(
            id=self.generate_id(),
            title=data.title,
            author=data.author,
            genre=data.genre,
            publication_year=data.publication_year,
            description=data.description,
            status=BookStatusEnum(data.status.value),
            rating=data.rating,
            total_pages=data.total_pages,
            isbn=data.isbn,
            cover_image=data.cover_image,
            language=data.language,
            publisher=data.publisher,
            tags=json.dumps(data.tags),
        )
        self.session.add(db_book)

        try:
            safe_commit(self.session, "create book")
        except IntegrityError as e:
            raise DuplicateError("A book with this ISBN already exists") from e

        return self.get_by_id(db_book.id)

    def update(self, book_id: str, changes: BookUpdate) -> BookModel:
        """
        Apply the fields present in ``changes``.

        Raises:
            InvalidIdError: If the id is malformed
            NotFoundError: If the book does not exist
            InvalidStateError: If the edit moves status into or out of checked_out
            DuplicateError: If the new ISBN belongs to another book
        """
        db_book = self._get_db_obj(book_id)
        fields = changes.model_dump(exclude_unset=True)

        if "status" in fields:
            new_status = BookStatusEnum(fields["status"].value)
            if new_status != db_book.status and BookStatusEnum.CHECKED_OUT in (
                new_status,
                db_book.status,
            ):
                raise InvalidStateError(
                    "Status can only change to or from checked_out through checkout and return"
                )
            fields["status"] = new_status

        if "isbn" in fields and self._isbn_taken(fields["isbn"], exclude_id=book_id):
            raise DuplicateError("A book with this ISBN already exists")

        for field, value in fields.items():
            setattr(db_book, field, value)
        db_book.updated_at = datetime.now()

        try:
            safe_commit(self.session, "update book")
        except IntegrityError as e:
            raise DuplicateError("A book with this ISBN already exists") from e

        return self.get_by_id(book_id)

    def _ensure_user_exists(self, user_id: str) -> None:
        query = select(func.count()).select_from(UserDB).where(UserDB.id == user_id)
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check user"
        )
        if not count:
            raise NotFoundError("User not found")

    def checkout_book(
        self, book_id: str, user_id: str, due_date: datetime | None = None
    ) -> BookModel:
        """
        Check a book out to a member.

        1. Validates the member and the book exist
        2. Validates a supplied due date lies in the future
        3. Flips available -> checked_out in one conditional UPDATE
        4. Records holder, checkout date and due date (default 14 days)

        Raises:
            InvalidIdError: If the book id is malformed
            NotFoundError: If the member or book does not exist
            ValidationFailedError: If the due date is in the past
            InvalidStateError: If the book is not available
        """
        self.validate_id(book_id)
        self._ensure_user_exists(user_id)
        self._get_db_obj(book_id)

        now = datetime.now()
        if due_date is not None:
            if due_date.tzinfo is not None:
                due_date = due_date.astimezone().replace(tzinfo=None)
            if due_date <= now:
                raise ValidationFailedError("Due date must be in the future")
        else:
            due_date = now + timedelta(days=LOAN_PERIOD_DAYS)

        statement = (
            update(BookDB)
            .where(BookDB.id == book_id, BookDB.status == BookStatusEnum.AVAILABLE)
            .values(
                status=BookStatusEnum.CHECKED_OUT,
                checked_out_by=user_id,
                checked_out_date=now,
                due_date=due_date,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = safe_query(self.session, lambda s: s.execute(statement), "Failed to check out book")

        if result.rowcount == 0:
            self.session.rollback()
            raise InvalidStateError("Book is not available for checkout")

        safe_commit(self.session, "checkout book")
        return self.get_by_id(book_id)

    def return_book(self, book_id: str, user_id: str) -> BookModel:
        """
        Return a book held by ``user_id``.

        Raises:
            InvalidIdError: If the book id is malformed
            NotFoundError: If the member or book does not exist
            InvalidStateError: If the book is not checked out
            NotOwnerError: If someone else holds the book
        """
        self.validate_id(book_id)
        self._ensure_user_exists(user_id)
        db_book = self._get_db_obj(book_id)

        if db_book.status != BookStatusEnum.CHECKED_OUT:
            raise InvalidStateError("Book is not checked out")

        if db_book.checked_out_by != user_id:
            raise NotOwnerError("You can only return books you have checked out")

        statement = (
            update(BookDB)
            .where(
                BookDB.id == book_id,
                BookDB.status == BookStatusEnum.CHECKED_OUT,
                BookDB.checked_out_by == user_id,
            )
            .values(
                status=BookStatusEnum.AVAILABLE,
                checked_out_by=None,
                checked_out_date=None,
                due_date=None,
                updated_at=datetime.now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = safe_query(self.session, lambda s: s.execute(statement), "Failed to return book")

        if result.rowcount == 0:
            self.session.rollback()
            raise InvalidStateError("Book is not checked out")

        safe_commit(self.session, "return book")
        return self.get_by_id(book_id)

    def add_review(
        self, book_id: str, user_id: str, rating: int, comment: str | None = None
    ) -> tuple[BookModel, ReviewModel]:
        """
        Add or replace a member's review of a book.

        A member has at most one review per book; a new one replaces the old.

        Returns:
            The updated book and the stored review

        Raises:
            ValidationFailedError: If rating is not an integer 1-5 or comment is too long
            InvalidIdError: If the book id is malformed
            NotFoundError: If the member or book does not exist
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationFailedError("Rating must be an integer between 1 and 5")
        if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationFailedError(
                f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters"
            )

        self.validate_id(book_id)
        self._ensure_user_exists(user_id)
        db_book = self._get_db_obj(book_id)

        for existing in [r for r in db_book.reviews if r.user_id == user_id]:
            db_book.reviews.remove(existing)
        # The old row must be gone before the unique (book, user) insert
        self.session.flush()

        now = datetime.now()
        review = ReviewDB(
            id=self.generate_id("review"),
            user_id=user_id,
            rating=rating,
            comment=comment,
            review_date=now,
        )
        db_book.reviews.append(review)
        db_book.updated_at = now

        safe_commit(self.session, "add review")

        book = self.get_by_id(book_id)
        stored = next(r for r in book.reviews if r.id == review.id)
        return book, stored

    def get_reading_list(self, user_id: str) -> list[BookModel]:
        """
        Books currently checked out by a member, most recent checkout first.

        Raises:
            NotFoundError: If the member does not exist
        """
        self._ensure_user_exists(user_id)

        query = (
            select(BookDB)
            .where(
                BookDB.checked_out_by == user_id,
                BookDB.status == BookStatusEnum.CHECKED_OUT,
            )
            .order_by(BookDB.checked_out_date.desc(), BookDB.id.asc())
            .options(*self._loader_options())
            .execution_options(populate_existing=True)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).unique().scalars().all(),
            "Failed to get reading list",
        )
        return [self._to_response_model(book) for book in results]

    def _to_response_model(self, db_book: BookDB) -> BookModel:
        """Convert a row to the API model, resolving user references."""
        checked_out_by = None
        if db_book.checked_out_by:
            holder = db_book.checked_out_user
            checked_out_by = UserRef(
                id=db_book.checked_out_by,
                name=holder.name if holder else None,
                email=holder.email if holder else None,
            )

        reviews = [
            ReviewModel(
                id=review.id,
                user=ReviewerRef(
                    id=review.user_id,
                    name=review.user.name if review.user else None,
                ),
                rating=review.rating,
                comment=review.comment,
                review_date=review.review_date,
            )
            for review in db_book.reviews
        ]

        return BookModel(
            id=db_book.id,
            title=db_book.title,
            author=db_book.author,
            genre=db_book.genre,
            publication_year=db_book.publication_year,
            description=db_book.description,
            status=BookStatus(db_book.status.value),
            rating=db_book.rating,
            total_pages=db_book.total_pages,
            isbn=db_book.isbn,
            cover_image=db_book.cover_image,
            language=db_book.language,
            publisher=db_book.publisher,
            tags=json.loads(db_book.tags) if db_book.tags else [],
            checked_out_by=checked_out_by,
            checked_out_date=db_book.checked_out_date,
            due_date=db_book.due_date,
            reviews=reviews,
            created_at=db_book.created_at,
            updated_at=db_book.updated_at,
        )
