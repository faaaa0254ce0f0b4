"""Signup, login and logout routes."""

import logging
from datetime import timedelta

from fastapi import APIRouter, HTTPException, status

from ..database import InvalidCredentialError
from ..models import CheckUserRequest, LoginRequest, User, UserSignup
from ..security import create_access_token
from .dependencies import IdentityDep, SettingsDep, UserRepoDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _issue_token(user: User, settings) -> str:
    return create_access_token(
        user.id,
        user.email,
        settings.jwt_secret,
        ttl=timedelta(hours=settings.token_ttl_hours),
    )


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: UserSignup, users: UserRepoDep, settings: SettingsDep):
    user = users.create(payload)
    return {
        "message": "User created successfully",
        "user": user.model_dump(mode="json", by_alias=True),
        "token": _issue_token(user, settings),
    }


@router.post("/check-user")
def check_user(payload: CheckUserRequest, users: UserRepoDep):
    return {"exists": users.exists_by_email(payload.email)}


@router.post("/login")
def login(payload: LoginRequest, users: UserRepoDep, settings: SettingsDep):
    try:
        user = users.authenticate(payload.email, payload.password)
    except InvalidCredentialError as e:
        logger.info("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password"
        ) from e

    return {
        "message": "Login successful",
        "user": user.model_dump(mode="json", by_alias=True),
        "token": _issue_token(user, settings),
    }


@router.post("/logout")
def logout(identity: IdentityDep):  # noqa: ARG001
    # Tokens are stateless; the client discards its copy
    return {"message": "Logout successful. Please remove the token from client storage."}
