from __future__ import annotations

import dataclasses
import os
import uuid
from datetime import datetime, timezone
from threading import Lock

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import routes
from app.domain.account import Account, ApprovalStatus, Role
from app.domain.approval import ApprovalEngine
from app.domain.directory import DirectoryService
from app.domain.errors import AccountAlreadyExistsError
from app.domain.restriction import RestrictionManager
from app.domain.service import AccountService
from app.main import attach_services
from app.repository import AuditEvent, AuditLogRecord
from app.security.passwords import hash_password
from app.security.throttle import InMemoryThrottle

PASSWORD = "correct-horse"


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed behaviours."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._lock = Lock()
        self.audit_log: list[AuditLogRecord] = []

    def find_by_id(self, account_id: str):
        account = self._accounts.get(account_id)
        return dataclasses.replace(account) if account else None

    def find_by_username(self, username: str):
        return self._first(lambda account: account.username == username)

    def find_by_email(self, email: str):
        return self._first(lambda account: account.email == email)

    def exists_by_username(self, username: str) -> bool:
        return self.find_by_username(username) is not None

    def exists_by_email(self, email: str) -> bool:
        return self.find_by_email(email) is not None

    def find_all(self):
        return [dataclasses.replace(account) for account in self._accounts.values()]

    def find_by_substring(self, query: str):
        needle = query.lower()
        return [
            dataclasses.replace(account)
            for account in self._accounts.values()
            if needle in account.username.lower()
        ]

    def find_by_status(self, status: ApprovalStatus, roles):
        roles = set(roles)
        return [
            dataclasses.replace(account)
            for account in self._accounts.values()
            if account.approval_status is status and account.role in roles
        ]

    def save(self, account: Account, audit: AuditEvent | None = None) -> Account:
        with self._lock:
            for other in self._accounts.values():
                if other.account_id == account.account_id:
                    continue
                if other.username == account.username or other.email == account.email:
                    raise AccountAlreadyExistsError("Username or email already exists")
            self._accounts[account.account_id] = dataclasses.replace(account)
            self._record(account.account_id, audit)
        return account

    def update_atomically(self, account_id: str, change, audit: AuditEvent | None = None):
        with self._lock:
            current = self._accounts.get(account_id)
            if current is None:
                return None
            updated = change(dataclasses.replace(current))
            self._accounts[account_id] = dataclasses.replace(updated)
            self._record(account_id, audit)
        return updated

    def delete_by_id(self, account_id: str, audit: AuditEvent | None = None) -> bool:
        with self._lock:
            deleted = self._accounts.pop(account_id, None) is not None
            if deleted:
                self._record(account_id, audit)
            return deleted

    def _record(self, account_id: str, audit: AuditEvent | None) -> None:
        if audit is None:
            return
        self.audit_log.append(
            AuditLogRecord(
                audit_id=len(self.audit_log) + 1,
                account_id=account_id,
                event_type=audit.event_type,
                actor=audit.actor,
                metadata=dict(audit.metadata),
                created_at=datetime.now(timezone.utc),
            )
        )

    def list_audit_events(self, *, account_id=None, event_type=None, limit=50):
        limit = max(1, min(limit, 100))
        records = [
            record
            for record in reversed(self.audit_log)
            if (account_id is None or record.account_id == account_id)
            and (event_type is None or record.event_type == event_type)
        ]
        return records[:limit]

    def events_for(self, account_id: str) -> list[str]:
        return [record.event_type for record in self.audit_log if record.account_id == account_id]

    def _first(self, predicate):
        for account in self._accounts.values():
            if predicate(account):
                return dataclasses.replace(account)
        return None


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def account_service(repository) -> AccountService:
    return AccountService(repository)


@pytest.fixture
def engine(repository) -> ApprovalEngine:
    return ApprovalEngine(repository)


@pytest.fixture
def restrictions(repository) -> RestrictionManager:
    return RestrictionManager(repository)


@pytest.fixture
def directory(repository) -> DirectoryService:
    return DirectoryService(repository)


@pytest.fixture
def seed(repository):
    """Insert an account directly in the given role and approval state."""

    def _seed(
        username: str,
        role: Role = Role.STUDENT,
        status: ApprovalStatus = ApprovalStatus.APPROVED,
        *,
        restricted: bool = False,
        reason: str | None = None,
    ) -> Account:
        account = Account(
            account_id=str(uuid.uuid4()),
            username=username,
            email=f"{username}@example.com",
            role=role,
            created_at=datetime.now(timezone.utc),
            password_hash=hash_password(PASSWORD),
            approval_status=status,
            restricted=restricted,
            restriction_reason=reason,
        )
        return repository.save(account)

    return _seed


@pytest.fixture
def api_client(repository):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    attach_services(app, repository)

    original_throttle = routes.throttle
    routes.throttle = InMemoryThrottle(max_requests=3, window_seconds=60)

    with TestClient(app) as client:
        yield client

    routes.throttle = original_throttle
