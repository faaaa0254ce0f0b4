"""
FastAPI dependencies shared by the routers.

Settings and the database manager live on ``app.state`` (set by
``create_app``); each request gets its own session, closed when the
response is done.
"""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import BookRepository, UserRepository
from ..security import InvalidTokenError, TokenClaims, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per request."""
    session = request.app.state.db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


SettingsDep = Annotated[Settings, Depends(get_settings)]
SessionDep = Annotated[Session, Depends(get_db)]


def get_book_repository(session: SessionDep) -> BookRepository:
    return BookRepository(session)


def get_user_repository(session: SessionDep, settings: SettingsDep) -> UserRepository:
    return UserRepository(session, bcrypt_rounds=settings.bcrypt_rounds)


def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: SettingsDep,
) -> TokenClaims:
    """
    Resolve the bearer token to the caller's identity.

    Raises:
        HTTPException: 401 when no token is sent, 403 when it does not verify
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required"
        )

    try:
        return decode_access_token(credentials.credentials, settings.jwt_secret)
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token"
        ) from e


BookRepoDep = Annotated[BookRepository, Depends(get_book_repository)]
UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]
IdentityDep = Annotated[TokenClaims, Depends(get_current_identity)]
