"""Administrative restriction flag, independent of approval state."""

from __future__ import annotations

import dataclasses
import logging

from .account import Account
from .errors import AccountNotFoundError
from ..repository import AuditEvent, UserRepository

logger = logging.getLogger(__name__)

DEFAULT_REASON = "No reason provided"


class RestrictionManager:
    """Set, clear and read the restriction flag.

    Callers are responsible for limiting ``restrict``/``unrestrict`` to administrators.
    """

    def __init__(self, repository: UserRepository) -> None:
        self._repository = repository

    def restrict(
        self, account_id: str, reason: str | None = None, *, actor: str | None = None
    ) -> Account:
        reason = reason.strip() if reason and reason.strip() else DEFAULT_REASON
        account = self._update(
            account_id,
            lambda current: dataclasses.replace(
                current, restricted=True, restriction_reason=reason
            ),
            AuditEvent("account.restricted", actor, {"reason": reason}),
        )
        logger.info("account restricted: %s reason=%s", account.username, reason)
        return account

    def unrestrict(self, account_id: str, *, actor: str | None = None) -> Account:
        account = self._update(
            account_id,
            lambda current: dataclasses.replace(
                current, restricted=False, restriction_reason=None
            ),
            AuditEvent("account.unrestricted", actor),
        )
        logger.info("account unrestricted: %s", account.username)
        return account

    def is_restricted(self, account_id: str) -> bool:
        account = self._repository.find_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(f"User not found with id: {account_id}")
        return account.restricted

    def _update(self, account_id: str, change, audit: AuditEvent) -> Account:
        account = self._repository.update_atomically(account_id, change, audit)
        if account is None:
            raise AccountNotFoundError(f"User not found with id: {account_id}")
        return account
