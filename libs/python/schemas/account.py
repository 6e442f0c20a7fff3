"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    FACULTY = "FACULTY"
    ADMIN = "ADMIN"


class UserAccount(BaseModel):
    """Public projection of a user account; never carries credential material."""

    id: str
    username: str
    email: EmailStr
    role: UserRole
    approval_status: str
    pending_approval: bool
    rejected: bool
    restricted: bool
    restriction_reason: str | None = None
    created_at: datetime


class RestrictionStatus(BaseModel):
    restricted: bool
