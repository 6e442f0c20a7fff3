"""Database repository for user account data."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from psycopg import errors
from psycopg.rows import tuple_row
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from .domain.account import Account, ApprovalStatus, Role
from .domain.errors import AccountAlreadyExistsError

_COLUMNS = (
    "account_id, username, email, password_hash, role, pending_approval, rejected, "
    "restricted, restriction_reason, created_at"
)


@dataclass(slots=True)
class AuditLogRecord:
    """Row projection for items in user_audit_log."""

    audit_id: int
    account_id: str | None
    event_type: str
    actor: str | None
    metadata: dict[str, Any]
    created_at: datetime


@dataclass(slots=True)
class AuditEvent:
    """Audit entry written in the same transaction as the change it describes."""

    event_type: str
    actor: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class UserRepository:
    """Postgres-backed account persistence.

    Approval state is stored as the two flags ``pending_approval`` and ``rejected``;
    this class is the only place that converts between them and :class:`ApprovalStatus`.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def find_by_id(self, account_id: str) -> Account | None:
        return self._fetch_one("account_id = %s", (account_id,))

    def find_by_username(self, username: str) -> Account | None:
        return self._fetch_one("username = %s", (username,))

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one("email = %s", (email,))

    def exists_by_username(self, username: str) -> bool:
        return self._exists("username = %s", (username,))

    def exists_by_email(self, email: str) -> bool:
        return self._exists("email = %s", (email,))

    def find_all(self) -> list[Account]:
        return self._fetch_many("TRUE", ())

    def find_by_substring(self, query: str) -> list[Account]:
        """Return accounts whose username contains ``query``, ignoring case."""
        return self._fetch_many("username ILIKE %s", (_like_pattern(query),))

    def find_by_status(self, status: ApprovalStatus, roles: Iterable[Role]) -> list[Account]:
        """Return accounts in ``status`` whose role is one of ``roles``."""
        pending_approval, rejected = status.to_flags()
        role_values = [role.value for role in roles]
        return self._fetch_many(
            "pending_approval = %s AND rejected = %s AND role = ANY(%s)",
            (pending_approval, rejected, role_values),
        )

    def save(self, account: Account, audit: AuditEvent | None = None) -> Account:
        """Insert or fully overwrite an account record, with an optional audit entry."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    self._upsert(cur, account)
                    if audit is not None:
                        self._insert_audit(cur, account.account_id, audit)
                conn.commit()
        except errors.UniqueViolation as exc:
            raise AccountAlreadyExistsError("Username or email already exists") from exc
        return account

    def update_atomically(
        self,
        account_id: str,
        change: Callable[[Account], Account],
        audit: AuditEvent | None = None,
    ) -> Account | None:
        """Apply ``change`` to the locked row and persist it in a single transaction.

        Returns ``None`` when the account does not exist. Exceptions raised by ``change``
        roll the transaction back and propagate unchanged; ``audit`` is only written when
        the change is persisted.
        """
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM users WHERE account_id = %s FOR UPDATE",
                    (account_id,),
                )
                row = cur.fetchone()
                if row is None:
                    return None
                updated = change(self._map_record(row))
                self._upsert(cur, updated)
                if audit is not None:
                    self._insert_audit(cur, account_id, audit)
            conn.commit()
        return updated

    def delete_by_id(self, account_id: str, audit: AuditEvent | None = None) -> bool:
        """Remove the account permanently, returning ``False`` if it did not exist."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM users WHERE account_id = %s", (account_id,))
                deleted = cur.rowcount > 0
                if deleted and audit is not None:
                    self._insert_audit(cur, account_id, audit)
            conn.commit()
        return deleted

    def list_audit_events(
        self,
        *,
        account_id: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
    ) -> list[AuditLogRecord]:
        """Return the newest audit entries, optionally filtered by account or event type."""
        limit = max(1, min(limit, 100))
        clauses = ["TRUE"]
        params: list[Any] = []
        if account_id:
            clauses.append("account_id = %s")
            params.append(account_id)
        if event_type:
            clauses.append("event_type = %s")
            params.append(event_type)
        params.append(limit)

        query = f"""
            SELECT audit_id, account_id, event_type, actor, metadata, created_at
            FROM user_audit_log
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, audit_id DESC
            LIMIT %s
        """
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                rows = cur.fetchall()
        return [
            AuditLogRecord(
                audit_id=row[0],
                account_id=row[1],
                event_type=row[2],
                actor=row[3],
                metadata=row[4] or {},
                created_at=row[5],
            )
            for row in rows
        ]

    def _fetch_one(self, where: str, params: tuple) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM users WHERE {where}", params)
                row = cur.fetchone()
        if not row:
            return None
        return self._map_record(row)

    def _fetch_many(self, where: str, params: tuple) -> list[Account]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM users WHERE {where}", params)
                rows = cur.fetchall()
        return [self._map_record(row) for row in rows]

    def _exists(self, where: str, params: tuple) -> bool:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT EXISTS (SELECT 1 FROM users WHERE {where})", params)
                row = cur.fetchone()
        return bool(row and row[0])

    def _insert_audit(self, cur, account_id: str, audit: AuditEvent) -> None:
        cur.execute(
            """
            INSERT INTO user_audit_log (account_id, event_type, actor, metadata)
            VALUES (%s, %s, %s, %s)
            """,
            (account_id, audit.event_type, audit.actor, Json(audit.metadata)),
        )

    def _upsert(self, cur, account: Account) -> None:
        pending_approval, rejected = account.approval_status.to_flags()
        cur.execute(
            f"""
            INSERT INTO users ({_COLUMNS})
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (account_id) DO UPDATE SET
                pending_approval = EXCLUDED.pending_approval,
                rejected = EXCLUDED.rejected,
                restricted = EXCLUDED.restricted,
                restriction_reason = EXCLUDED.restriction_reason,
                password_hash = EXCLUDED.password_hash,
                email = EXCLUDED.email
            """,
            (
                account.account_id,
                account.username,
                account.email,
                account.password_hash,
                account.role.value,
                pending_approval,
                rejected,
                account.restricted,
                account.restriction_reason,
                account.created_at,
            ),
        )

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=str(row[0]),
            username=row[1],
            email=row[2],
            password_hash=row[3],
            role=Role(row[4]),
            approval_status=ApprovalStatus.from_flags(row[5], row[6]),
            restricted=row[7],
            restriction_reason=row[8],
            created_at=row[9],
        )
