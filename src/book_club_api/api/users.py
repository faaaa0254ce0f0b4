"""Routes acting on the authenticated user's own account."""

import logging

from fastapi import APIRouter

from ..models import PasswordChange, ProfileUpdate
from .dependencies import BookRepoDep, IdentityDep, UserRepoDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["users"])


@router.get("/profile")
def get_profile(identity: IdentityDep, users: UserRepoDep):
    user = users.get_by_id(identity.user_id)
    return {
        "message": "Profile retrieved successfully",
        "user": user.model_dump(mode="json", by_alias=True),
    }


@router.put("/profile")
def update_profile(payload: ProfileUpdate, identity: IdentityDep, users: UserRepoDep):
    user = users.update_profile(identity.user_id, payload)
    return {
        "message": "Profile updated successfully",
        "user": user.model_dump(mode="json", by_alias=True),
    }


@router.put("/change-password")
def change_password(payload: PasswordChange, identity: IdentityDep, users: UserRepoDep):
    users.change_password(identity.user_id, payload.current_password, payload.new_password)
    logger.info("Password changed for %s", identity.user_id)
    return {"message": "Password changed successfully"}


@router.delete("/account")
def delete_account(identity: IdentityDep, users: UserRepoDep):
    # Books and reviews keep their references to the deleted id
    users.delete(identity.user_id)
    logger.info("Deleted account %s", identity.user_id)
    return {"message": "Account deleted successfully"}


@router.get("/reading-list")
def reading_list(identity: IdentityDep, books: BookRepoDep):
    result = books.get_reading_list(identity.user_id)
    return {
        "message": "Reading list retrieved successfully",
        "books": [book.model_dump(mode="json", by_alias=True) for book in result],
        "count": len(result),
    }
