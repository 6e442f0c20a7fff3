"""Read-only account lookups."""

from __future__ import annotations

from .account import Account
from .errors import AccountNotFoundError
from ..repository import UserRepository


class DirectoryService:
    def __init__(self, repository: UserRepository) -> None:
        self._repository = repository

    def get_by_id(self, account_id: str) -> Account:
        account = self._repository.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(f"User not found with id: {account_id}")
        return account

    def get_by_username(self, username: str) -> Account:
        account = self._repository.find_by_username(username)
        if account is None:
            raise AccountNotFoundError(f"User not found with username: {username}")
        return account

    def list_all(self) -> list[Account]:
        return self._repository.find_all()

    def search(self, query: str) -> list[Account]:
        """Case-insensitive substring match on username."""
        return self._repository.find_by_substring(query)
