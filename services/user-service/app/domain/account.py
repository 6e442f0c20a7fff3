from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    STUDENT = "STUDENT"
    FACULTY = "FACULTY"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: str | None) -> "Role | None":
        """Return the role whose name is exactly ``value``, or ``None``."""
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def from_requested(cls, value: str | None) -> "Role":
        """Parse a role requested at registration, ignoring case and falling back to STUDENT."""
        if not value:
            return cls.STUDENT
        return cls.parse(value.strip().upper()) or cls.STUDENT


class ApprovalStatus(str, Enum):
    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"

    @classmethod
    def initial_for(cls, role: Role) -> "ApprovalStatus":
        return cls.APPROVED if role is Role.STUDENT else cls.PENDING

    @classmethod
    def from_flags(cls, pending_approval: bool, rejected: bool) -> "ApprovalStatus":
        """Decode the persisted ``(pending_approval, rejected)`` pair."""
        if pending_approval and rejected:
            raise ValueError("account cannot be both pending approval and rejected")
        if pending_approval:
            return cls.PENDING
        if rejected:
            return cls.REJECTED
        return cls.APPROVED

    def to_flags(self) -> tuple[bool, bool]:
        """Encode as the persisted ``(pending_approval, rejected)`` pair."""
        return self is ApprovalStatus.PENDING, self is ApprovalStatus.REJECTED


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user."""

    account_id: str
    username: str
    email: str
    role: Role
    created_at: datetime
    password_hash: str = field(repr=False)
    approval_status: ApprovalStatus = ApprovalStatus.APPROVED
    restricted: bool = False
    restriction_reason: str | None = None

    @property
    def pending_approval(self) -> bool:
        return self.approval_status is ApprovalStatus.PENDING

    @property
    def rejected(self) -> bool:
        return self.approval_status is ApprovalStatus.REJECTED
