"""Shared schema exports."""

from .account import RestrictionStatus, UserAccount, UserRole

__all__ = [
    "RestrictionStatus",
    "UserAccount",
    "UserRole",
]
