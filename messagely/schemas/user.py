"""
Messagely Backend — User Schemas
==================================

What:  Pydantic models for user profiles as the API exposes them.
Who:   Returned by UserService and the /users routes.

Two shapes exist on purpose:
    UserPublic: {username, first_name, last_name, phone}. Safe for
                anyone, and the shape used when a message is enriched
                with its counterpart.
    UserDetail: UserPublic + join_at, last_login_at. Only the user
                themself may see it.
Neither ever carries the password hash.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class UserPublic(BaseModel):
    """Public profile fields of a user."""
    username: str = Field(description="Unique username")
    first_name: str = Field(description="Given name")
    last_name: str = Field(description="Family name")
    phone: str = Field(description="Phone number")

    model_config = {"from_attributes": True}


class UserDetail(UserPublic):
    """Full profile, visible to the profile owner only."""
    join_at: datetime = Field(description="Registration time (UTC)")
    last_login_at: Optional[datetime] = Field(
        default=None,
        description="Last successful login (UTC)",
    )


class RegisteredUser(UserPublic):
    """
    What register() hands back to its caller.

    Includes the stored hash so callers (and tests) can confirm the
    plaintext was never persisted. Never sent over HTTP.
    """
    password: str = Field(description="bcrypt hash as stored")


class UserListResponse(BaseModel):
    """GET /users/"""
    users: List[UserPublic]


class UserDetailResponse(BaseModel):
    """GET /users/{username}"""
    user: UserDetail
