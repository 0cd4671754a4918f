from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

TITLE_MAX_LENGTH = 200


def _normalize_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise ValueError(f"title length must be between 1 and {TITLE_MAX_LENGTH} characters")
    return s


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Input of `todo.create`.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
            }
        }
    )

    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """
        Strip whitespace and enforce 1..200 length.
        """
        return _normalize_title(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        """An empty description is stored as no description."""
        return v or None


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Input of `todo.update`.

    Only fields present in the payload are written (see `model_fields_set`).
    `description` may be explicitly null to clear it; `title` and `completed`
    may be omitted but never null.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c1b8e-3b7c-4d0e-9a43-2f0f6a0d9a11",
                "title": "Buy groceries and supplies",
                "completed": True,
            }
        }
    )

    id: UUID = Field(..., description="Identifier of the todo to update")
    title: Optional[str] = Field(default=None, description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        """
        If title is provided, strip whitespace and enforce 1..200 length.
        """
        if v is None:
            raise ValueError("title may be omitted but not null")
        return _normalize_title(v)

    @field_validator("completed")
    @classmethod
    def validate_completed(cls, v: Optional[bool]) -> bool:
        if v is None:
            raise ValueError("completed may be omitted but not null")
        return v

    def changes(self) -> dict:
        """Return the present fields, excluding the id."""
        return {name: getattr(self, name) for name in self.model_fields_set if name != "id"}


# PUBLIC_INTERFACE
class TodoId(BaseModel):
    """Input of procedures addressing a single todo."""

    id: UUID = Field(..., description="Identifier of the todo")


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Todo item as returned by the RPC procedures.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c1b8e-3b7c-4d0e-9a43-2f0f6a0d9a11",
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "completed": False,
                "user_id": "0b5e8a52-2f0f-4a55-8f0d-1c1a2b3c4d5e",
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-26T09:00:00.000001Z",
            }
        }
    )

    id: str = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    completed: bool = Field(..., description="Completion status flag")
    user_id: str = Field(..., description="Identifier of the owning user")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


# PUBLIC_INTERFACE
class DeleteResult(BaseModel):
    """Acknowledgement returned by `todo.delete`."""

    success: Literal[True] = True


# PUBLIC_INTERFACE
class HealthOut(BaseModel):
    """Liveness payload returned by `health` and `/health`."""

    status: str = Field(default="ok")
    timestamp: str = Field(..., description="ISO 8601 UTC timestamp")


# PUBLIC_INTERFACE
class SignUpInput(BaseModel):
    """Payload of `POST /api/auth/sign-up/email`."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("name must not be blank")
        return s


# PUBLIC_INTERFACE
class SignInInput(BaseModel):
    """Payload of `POST /api/auth/sign-in/email`."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


# PUBLIC_INTERFACE
class UserOut(BaseModel):
    """Public view of a user."""

    id: str
    email: str
    name: str
    email_verified: bool
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class SessionOut(BaseModel):
    """Public view of a session."""

    id: str
    user_id: str
    expires_at: datetime
    created_at: datetime
