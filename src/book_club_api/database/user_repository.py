"""
User repository implementation for the Book Club API.

Handles accounts and their credentials:
- Signup with a unique, lower-cased email
- Login by email and password
- Profile edits (name and email only) and password changes

Password hashes never leave this module; every method returns the public
``User`` model.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database.schema import User as UserDB
from ..database.session import safe_commit, safe_query
from ..models.user import ProfileUpdate, UserSignup
from ..models.user import User as UserModel
from ..security import hash_password, verify_password
from .repository import (
    BaseRepository,
    DuplicateError,
    InvalidCredentialError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[UserDB, UserModel]):
    """
    Repository for user data access.

    Args:
        session: Database session
        bcrypt_rounds: Cost factor for new password hashes
    """

    id_prefix = "user"

    def __init__(self, session: Session, bcrypt_rounds: int = 12):
        super().__init__(session)
        self.bcrypt_rounds = bcrypt_rounds

    @property
    def model_class(self):
        return UserDB

    def _hash(self, password: str) -> str:
        try:
            return hash_password(password, rounds=self.bcrypt_rounds)
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e

    def _get_by_email_db(self, email: str) -> UserDB | None:
        query = select(UserDB).where(UserDB.email == email.strip().lower())
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get user by email",
        )

    def exists_by_email(self, email: str, exclude_id: str | None = None) -> bool:
        query = (
            select(func.count())
            .select_from(UserDB)
            .where(UserDB.email == email.strip().lower())
        )
        if exclude_id:
            query = query.where(UserDB.id != exclude_id)
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check email"
        )
        return count > 0

    def create(self, data: UserSignup) -> UserModel:
        """
        Create an account.

        Raises:
            DuplicateError: If the email is already registered
            ValidationFailedError: If the password cannot be hashed
        """
        if self.exists_by_email(data.email):
            raise DuplicateError("User already exists with this email")

        db_user = UserDB(
            id=self.generate_id(),
            name=data.name,
            email=data.email,
            password_hash=self._hash(data.password),
        )
        self.session.add(db_user)

        try:
            safe_commit(self.session, "create user")
        except IntegrityError as e:
            raise DuplicateError("User already exists with this email") from e

        logger.info("Created user %s", db_user.id)
        return self._to_response_model(db_user)

    def authenticate(self, email: str, password: str) -> UserModel:
        """
        Check an email and password pair.

        The same error is raised for an unknown email and a wrong password.

        Raises:
            InvalidCredentialError: If the credentials do not match
        """
        db_user = self._get_by_email_db(email)
        if db_user is None or not verify_password(password, db_user.password_hash):
            raise InvalidCredentialError("Invalid email or password")
        return self._to_response_model(db_user)

    def update_profile(self, user_id: str, changes: ProfileUpdate) -> UserModel:
        """
        Update name and/or email.

        Raises:
            InvalidIdError: If the id is malformed
            NotFoundError: If the user does not exist
            DuplicateError: If the email belongs to another account
        """
        db_user = self._get_db_obj(user_id)
        fields = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}

        if "email" in fields and self.exists_by_email(fields["email"], exclude_id=user_id):
            raise DuplicateError("Email already exists")

        for field, value in fields.items():
            setattr(db_user, field, value)

        try:
            safe_commit(self.session, "update profile")
        except IntegrityError as e:
            raise DuplicateError("Email already exists") from e

        return self._to_response_model(db_user)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        """
        Replace the password after verifying the current one.

        Raises:
            NotFoundError: If the user does not exist
            InvalidCredentialError: If the current password is wrong
        """
        db_user = self._get_db_obj(user_id)

        if not verify_password(current_password, db_user.password_hash):
            raise InvalidCredentialError("Current password is incorrect")

        db_user.password_hash = self._hash(new_password)
        safe_commit(self.session, "change password")

    def _to_response_model(self, db_user: UserDB) -> UserModel:
        return UserModel(
            id=db_user.id,
            name=db_user.name,
            email=db_user.email,
            created_at=db_user.created_at,
            updated_at=db_user.updated_at,
        )
