"""Approval workflow over non-student accounts.

An account is in exactly one of PENDING, APPROVED or REJECTED. STUDENT accounts are
created APPROVED and never enter the workflow; FACULTY and ADMIN accounts start PENDING.

Transitions are gated by :mod:`app.domain.policy`: FACULTY actors act on FACULTY
targets only, ADMIN actors on FACULTY and ADMIN targets. ``approve`` additionally
requires the target to be PENDING or REJECTED. ``reject`` has no state precondition,
so an APPROVED account can be rejected directly.
"""

from __future__ import annotations

import dataclasses
import logging

from .account import Account, ApprovalStatus
from .errors import AccountNotFoundError, InvalidStateError
from .policy import Action, authorize, target_roles
from ..repository import AuditEvent, UserRepository

logger = logging.getLogger(__name__)


class ApprovalEngine:
    """Role-gated approve/reject transitions and scoped listings."""

    def __init__(self, repository: UserRepository) -> None:
        self._repository = repository

    def approve(self, account_id: str, actor_role: str, *, actor: str | None = None) -> Account:
        def change(account: Account) -> Account:
            authorize(actor_role, Action.APPROVE, account.role)
            if account.approval_status is ApprovalStatus.APPROVED:
                raise InvalidStateError("User is not pending approval or rejected")
            return dataclasses.replace(account, approval_status=ApprovalStatus.APPROVED)

        account = self._transition(
            account_id,
            change,
            AuditEvent("account.approved", actor, {"actor_role": actor_role}),
        )
        logger.info("account %s approved by %s", account.username, actor_role)
        return account

    def reject(self, account_id: str, actor_role: str, *, actor: str | None = None) -> Account:
        def change(account: Account) -> Account:
            authorize(actor_role, Action.REJECT, account.role)
            return dataclasses.replace(account, approval_status=ApprovalStatus.REJECTED)

        account = self._transition(
            account_id,
            change,
            AuditEvent("account.rejected", actor, {"actor_role": actor_role}),
        )
        logger.info("account %s rejected by %s", account.username, actor_role)
        return account

    def list_pending(self, actor_role: str) -> list[Account]:
        roles = target_roles(actor_role, Action.LIST_PENDING)
        return self._repository.find_by_status(ApprovalStatus.PENDING, roles)

    def list_rejected(self, actor_role: str) -> list[Account]:
        roles = target_roles(actor_role, Action.LIST_REJECTED)
        return self._repository.find_by_status(ApprovalStatus.REJECTED, roles)

    def _transition(self, account_id: str, change, audit: AuditEvent) -> Account:
        account = self._repository.update_atomically(account_id, change, audit)
        if account is None:
            raise AccountNotFoundError(f"User not found with id: {account_id}")
        return account
