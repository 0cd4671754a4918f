from __future__ import annotations

from datetime import datetime
from typing import Optional, TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A Todo row as read back from the store.

    Fields:
    - id: uuid4 string generated at creation
    - title: Short title (1..200 chars, trimmed on input via schemas)
    - description: Optional detailed description
    - completed: Boolean completion flag
    - user_id: Identifier of the owning user
    - created_at: UTC creation timestamp, never changes
    - updated_at: UTC last update timestamp, strictly increasing per row
    """

    id: str
    title: str
    description: Optional[str]
    completed: bool
    user_id: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class UserEntity(TypedDict):
    """A user row owned by the auth collaborator (password hash excluded)."""

    id: str
    email: str
    name: str
    email_verified: bool
    image: Optional[str]
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
class SessionEntity(TypedDict):
    """An opaque session token bound to a user."""

    id: str
    token: str
    user_id: str
    expires_at: datetime
    created_at: datetime
