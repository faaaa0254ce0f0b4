"""
Book Club API models.

Pydantic v2 models for request validation and response serialization:
- Book / BookCreate / BookUpdate: catalog entries and their edits
- Review / ReviewCreate: per-member book reviews
- User / UserSignup / ProfileUpdate / PasswordChange: club members
"""

from .book import (
    UPDATABLE_FIELDS,
    Book,
    BookCreate,
    BookStatus,
    BookUpdate,
    Review,
    ReviewCreate,
    ReviewerRef,
    UserRef,
)
from .user import (
    CheckUserRequest,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    User,
    UserSignup,
)

__all__ = [
    "UPDATABLE_FIELDS",
    "Book",
    "BookCreate",
    "BookStatus",
    "BookUpdate",
    "CheckUserRequest",
    "LoginRequest",
    "PasswordChange",
    "ProfileUpdate",
    "Review",
    "ReviewCreate",
    "ReviewerRef",
    "User",
    "UserRef",
    "UserSignup",
]
