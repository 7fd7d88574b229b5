"""
User Pydantic Schemas

These schemas define the shape of data for User-related API operations.

Schemas:
- UserCreate: Registration data (email, password, username, role)
- UserResponse: Account data for the owner (never exposes password)
- UserPublicResponse: Author info embedded in reviews
- TokenResponse: JWT returned by login

Pydantic v2 Features Used:
- model_config: Configure model behavior
- Field(): Define constraints and metadata
- field_validator: Validate and transform field values
- EmailStr: Built-in email validation
"""

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserBase(BaseModel):
    """Shared user fields."""

    email: EmailStr = Field(
        ...,
        description="User's email address",
        examples=["jane@example.com"],
    )

    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        description="Unique username (3-50 characters, alphanumeric and underscores)",
        examples=["jane", "event_fan42"],
    )

    @field_validator("username")
    @classmethod
    def username_must_be_valid(cls, v: str) -> str:
        """
        Validate username format.

        Rules:
        - Only alphanumeric and underscores
        - Must start with a letter
        """
        if not re.match(r"^[a-zA-Z][a-zA-Z0-9_]*$", v):
            raise ValueError(
                "Username must start with a letter and contain only "
                "letters, numbers, and underscores"
            )
        return v.lower()


class UserCreate(UserBase):
    """
    Schema for user registration.

    Admin accounts cannot be self-registered; they are promoted in the
    database.
    """

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (min 8 chars, must include uppercase and number)",
        examples=["SecurePass123"],
    )

    full_name: str | None = Field(
        default=None,
        max_length=255,
        description="User's full display name",
        examples=["Jane Doe"],
    )

    role: Literal["USER", "ORGANIZER"] = Field(
        default="USER",
        description="Account role requested at registration",
    )

    @field_validator("password")
    @classmethod
    def password_must_be_strong(cls, v: str) -> str:
        """
        Validate password strength.

        Requirements:
        - At least 1 uppercase letter
        - At least 1 lowercase letter
        - At least 1 number
        """
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"\d", v):
            raise ValueError("Password must contain at least one number")
        return v


class UserResponse(BaseModel):
    """
    Schema for the authenticated user's own profile.

    SECURITY: Never includes password or sensitive internal fields.
    """

    id: int = Field(..., description="Unique user identifier")
    email: EmailStr = Field(..., description="User's email address")
    username: str = Field(..., description="Unique username")
    full_name: str | None = Field(default=None, description="User's full display name")
    avatar_url: str | None = Field(default=None, description="URL to avatar image")
    role: str = Field(..., description="USER, ORGANIZER or ADMIN")
    is_active: bool = Field(..., description="Whether the account is active")
    created_at: datetime = Field(..., description="When the user registered")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "email": "jane@example.com",
                "username": "jane",
                "full_name": "Jane Doe",
                "avatar_url": None,
                "role": "USER",
                "is_active": True,
                "created_at": "2024-01-15T10:30:00Z",
            }
        },
    )


class UserPublicResponse(BaseModel):
    """
    Public user profile embedded in review responses.

    Excludes email and account status fields.
    """

    id: int = Field(..., description="Unique user identifier")
    username: str = Field(..., description="Unique username")
    full_name: str | None = Field(default=None, description="User's display name")
    avatar_url: str | None = Field(default=None, description="URL to avatar image")

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """JWT access token returned by /auth/login."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Always 'bearer'")
    expires_in: int = Field(..., description="Token lifetime in seconds")
