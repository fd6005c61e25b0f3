"""
Profile model for trade partners.

A profile is what makes a user visible to the match engine: it carries the
in-game friend id other players need to send a trade request.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import field_validator
from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
FRIEND_ID_RE = re.compile(r"^\d{4}-\d{4}-\d{4}-\d{4}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProfileBase(SQLModel):
    """Base profile fields shared across schemas."""
    username: str = Field(unique=True, index=True)
    friend_id: str


class Profile(ProfileBase, table=True):
    """
    Profile database model.

    Attributes:
        user_id: Subject id from the identity provider (primary key).
        username: Unique display name.
        friend_id: In-game friend code, "NNNN-NNNN-NNNN-NNNN".
        created_at: Profile creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "profiles"

    user_id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class ProfileUpsert(SQLModel):
    """Schema for creating or updating the caller's profile."""
    username: str
    friend_id: str

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        value = value.strip()
        if not USERNAME_RE.match(value):
            raise ValueError(
                "Username must be 3-20 characters of letters, numbers, and underscores."
            )
        return value

    @field_validator("friend_id")
    @classmethod
    def check_friend_id(cls, value: str) -> str:
        value = value.strip()
        if not FRIEND_ID_RE.match(value):
            raise ValueError("Invalid Friend ID format.")
        return value


class ProfileRead(ProfileBase):
    """Schema for reading profile data."""
    user_id: str
    created_at: Optional[datetime] = None
