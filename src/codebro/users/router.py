"""User endpoints: edit own profile, search users."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from codebro.auth.dependencies import get_current_identity
from codebro.auth.jwt import Identity
from codebro.dependencies import get_user_directory, utcnow
from codebro.users import service
from codebro.users.schemas import ProfileUpdateRequest, UserProfile, UserSearchResponse
from codebro.users.store import UserDirectory

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.patch("/me/profile", response_model=UserProfile)
async def update_my_profile(
    body: ProfileUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
    now: datetime = Depends(utcnow),
):
    """Update full_name, username, bio or avatar_url."""
    return await service.update_profile(directory, identity.user_id, body.model_dump(exclude_unset=True), now)


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    q: str = Query("", max_length=100),
    _identity: Identity = Depends(get_current_identity),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Case-insensitive match on username, full name or e-mail (first 20)."""
    return await service.search_users(directory, q)
