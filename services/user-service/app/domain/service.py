"""Account service covering registration, credential checks, and deletion."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from .account import Account, ApprovalStatus, Role
from .contracts import CreateAccountInput
from .errors import AccountAlreadyExistsError, AccountNotFoundError, InvalidCredentialsError
from ..repository import AuditEvent, AuditLogRecord, UserRepository
from ..security.passwords import burn_verification, hash_password, verify_password
from ..security.tokens import issue_access_token

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
PENDING_MESSAGE = (
    "Your account is pending approval. Please wait for an administrator "
    "or faculty member to approve your registration."
)
REJECTED_MESSAGE = "Your account registration was rejected. Please contact an administrator."


class AccountService:
    """Account lifecycle workflows backed by Postgres storage."""

    def __init__(self, repository: UserRepository) -> None:
        self._repository = repository

    def create_account(self, payload: CreateAccountInput) -> Account:
        """Register an account; FACULTY and ADMIN registrations start out pending."""
        if self._repository.exists_by_username(payload.username):
            raise AccountAlreadyExistsError(f"Username already exists: {payload.username}")
        if self._repository.exists_by_email(payload.email):
            raise AccountAlreadyExistsError(f"Email already exists: {payload.email}")

        role = Role.from_requested(payload.requested_role)
        account = Account(
            account_id=str(uuid.uuid4()),
            username=payload.username,
            email=payload.email,
            role=role,
            created_at=datetime.now(timezone.utc),
            password_hash=hash_password(payload.password),
            approval_status=ApprovalStatus.initial_for(role),
        )
        self._repository.save(
            account,
            AuditEvent(
                "account.created",
                account.account_id,
                {"role": role.value, "approval_status": account.approval_status.value},
            ),
        )
        logger.info(
            "account created: %s role=%s status=%s",
            account.username,
            role.value,
            account.approval_status.value,
        )
        return account

    def validate_credentials(self, username: str, password: str) -> Account:
        """Return the account when the password matches and no login gate applies.

        Gates are checked in a fixed order after the hash comparison: restricted,
        pending approval, rejected.
        """
        account = self._repository.find_by_username(username)
        if account is None:
            burn_verification(password)
            logger.warning("credential check failed for %s", username)
            raise InvalidCredentialsError(INVALID_CREDENTIALS)
        if not verify_password(password, account.password_hash):
            logger.warning("credential check failed for %s", username)
            raise InvalidCredentialsError(INVALID_CREDENTIALS)

        if account.restricted:
            raise InvalidCredentialsError(f"Account is restricted: {account.restriction_reason}")
        if account.approval_status is ApprovalStatus.PENDING:
            raise InvalidCredentialsError(PENDING_MESSAGE)
        if account.approval_status is ApprovalStatus.REJECTED:
            raise InvalidCredentialsError(REJECTED_MESSAGE)

        logger.info("credentials validated for %s", account.username)
        return account

    def issue_token(self, account: Account) -> tuple[str, int]:
        """Issue a bearer token for an account that passed credential validation."""
        return issue_access_token(
            subject=account.account_id,
            username=account.username,
            role=account.role.value,
        )

    def list_audit_events(
        self, *, account_id: str | None = None, event_type: str | None = None, limit: int = 50
    ) -> list[AuditLogRecord]:
        return self._repository.list_audit_events(
            account_id=account_id, event_type=event_type, limit=limit
        )

    def delete_account(self, account_id: str, *, actor: str | None = None) -> None:
        if not self._repository.delete_by_id(account_id, AuditEvent("account.deleted", actor)):
            raise AccountNotFoundError(f"User not found with id: {account_id}")
        logger.info("account deleted: %s", account_id)
