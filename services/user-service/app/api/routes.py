"""HTTP route definitions for the user service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from schemas import RestrictionStatus, UserAccount

from ..config import get_settings
from ..domain.account import Account
from ..domain.approval import ApprovalEngine
from ..domain.contracts import ActorContext, CreateAccountInput
from ..domain.directory import DirectoryService
from ..domain.errors import (
    AccountAlreadyExistsError,
    AccountError,
    AccountNotFoundError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidStateError,
)
from ..domain.policy import Action, authorize, authorize_owner
from ..domain.restriction import RestrictionManager
from ..domain.service import AccountService
from ..security.passwords import MAX_PASSWORD_BYTES
from ..security.throttle import build_throttle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class RegisterRequest(BaseModel):
    """Payload accepted when registering an account."""

    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: str | None = None

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class ValidateCredentialsRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Token issuance response containing the bearer token and the account."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserAccount


class RestrictRequest(BaseModel):
    reason: str | None = None


class AuditLogEntry(BaseModel):
    """Audit log response entry."""

    audit_id: int
    account_id: str | None
    event_type: str
    actor: str | None
    metadata: dict[str, Any]
    created_at: datetime


class AuditLogResponse(BaseModel):
    items: list[AuditLogEntry]


settings = get_settings()
throttle = build_throttle(settings)

_STATUS_BY_ERROR: dict[type[AccountError], int] = {
    AccountNotFoundError: status.HTTP_404_NOT_FOUND,
    AccountAlreadyExistsError: status.HTTP_409_CONFLICT,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidStateError: status.HTTP_400_BAD_REQUEST,
}


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_approval_engine(request: Request) -> ApprovalEngine:
    return request.app.state.approval_engine


def get_restriction_manager(request: Request) -> RestrictionManager:
    return request.app.state.restriction_manager


def get_directory(request: Request) -> DirectoryService:
    return request.app.state.directory_service


def get_actor(
    role: str | None = Header(default=None, alias="X-User-Role"),
    actor_id: str | None = Header(default=None, alias="X-User-Id"),
) -> ActorContext:
    """Read the actor identity the gateway attached after authenticating the session."""
    if not role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing actor context")
    return ActorContext(role=role, account_id=actor_id)


def _check_throttle(key: str) -> None:
    if not throttle.allow(key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


def _to_schema(account: Account) -> UserAccount:
    return UserAccount(
        id=account.account_id,
        username=account.username,
        email=account.email,
        role=account.role.value,
        approval_status=account.approval_status.value,
        pending_approval=account.pending_approval,
        rejected=account.rejected,
        restricted=account.restricted,
        restriction_reason=account.restriction_reason,
        created_at=account.created_at,
    )


def _http_error(exc: AccountError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _register(payload: RegisterRequest, service: AccountService) -> UserAccount:
    _check_throttle(f"register:{payload.username}")
    try:
        account = service.create_account(
            CreateAccountInput(
                username=payload.username,
                email=payload.email,
                password=payload.password,
                requested_role=payload.role,
            )
        )
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _to_schema(account)


def _validate(payload: ValidateCredentialsRequest, service: AccountService) -> Account:
    _check_throttle(f"login:{payload.username}")
    try:
        return service.validate_credentials(payload.username, payload.password)
    except AccountError as exc:
        raise _http_error(exc) from exc


@router.post("/auth/register", response_model=UserAccount, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> UserAccount:
    """Register an account. FACULTY and ADMIN registrations await approval."""
    return _register(payload, service)


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: ValidateCredentialsRequest,
    service: AccountService = Depends(get_account_service),
) -> LoginResponse:
    """Validate credentials and issue a bearer token."""
    account = _validate(payload, service)
    token, expires_in = service.issue_token(account)
    return LoginResponse(access_token=token, expires_in=expires_in, user=_to_schema(account))


@router.post(
    "/users/internal/create", response_model=UserAccount, status_code=status.HTTP_201_CREATED
)
def internal_create(
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> UserAccount:
    """Create an account on behalf of the authentication gateway."""
    return _register(payload, service)


@router.post("/users/internal/validate", response_model=UserAccount)
def internal_validate(
    payload: ValidateCredentialsRequest,
    service: AccountService = Depends(get_account_service),
) -> UserAccount:
    """Validate credentials on behalf of the authentication gateway."""
    return _to_schema(_validate(payload, service))


@router.get("/users/me", response_model=UserAccount)
def current_user(
    actor: ActorContext = Depends(get_actor),
    directory: DirectoryService = Depends(get_directory),
) -> UserAccount:
    if not actor.account_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing actor context")
    try:
        return _to_schema(directory.get_by_id(actor.account_id))
    except AccountError as exc:
        raise _http_error(exc) from exc


@router.get("/users", response_model=list[UserAccount])
def list_users(
    actor: ActorContext = Depends(get_actor),
    directory: DirectoryService = Depends(get_directory),
) -> list[UserAccount]:
    try:
        authorize(actor.role, Action.LIST_ALL)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [_to_schema(account) for account in directory.list_all()]


@router.get("/users/search", response_model=list[UserAccount])
def search_users(
    q: str = Query(..., min_length=1),
    actor: ActorContext = Depends(get_actor),
    directory: DirectoryService = Depends(get_directory),
) -> list[UserAccount]:
    """Search accounts by partial username, ignoring case."""
    try:
        authorize(actor.role, Action.SEARCH)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [_to_schema(account) for account in directory.search(q)]


@router.get("/users/pending", response_model=list[UserAccount])
def pending_users(
    actor: ActorContext = Depends(get_actor),
    engine: ApprovalEngine = Depends(get_approval_engine),
) -> list[UserAccount]:
    try:
        accounts = engine.list_pending(actor.role)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [_to_schema(account) for account in accounts]


@router.get("/users/rejected", response_model=list[UserAccount])
def rejected_users(
    actor: ActorContext = Depends(get_actor),
    engine: ApprovalEngine = Depends(get_approval_engine),
) -> list[UserAccount]:
    try:
        accounts = engine.list_rejected(actor.role)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [_to_schema(account) for account in accounts]


@router.get("/users/username/{username}", response_model=UserAccount)
def get_user_by_username(
    username: str,
    actor: ActorContext = Depends(get_actor),
    directory: DirectoryService = Depends(get_directory),
) -> UserAccount:
    try:
        return _to_schema(directory.get_by_username(username))
    except AccountError as exc:
        raise _http_error(exc) from exc


@router.get("/users/{account_id}", response_model=UserAccount)
def get_user(
    account_id: str,
    actor: ActorContext = Depends(get_actor),
    directory: DirectoryService = Depends(get_directory),
) -> UserAccount:
    """Return an account; users may read their own, ADMIN may read any."""
    try:
        authorize_owner(actor.role, actor.account_id, account_id)
        return _to_schema(directory.get_by_id(account_id))
    except AccountError as exc:
        raise _http_error(exc) from exc


@router.get("/users/{account_id}/restricted", response_model=RestrictionStatus)
def user_restricted(
    account_id: str,
    actor: ActorContext = Depends(get_actor),
    manager: RestrictionManager = Depends(get_restriction_manager),
) -> RestrictionStatus:
    try:
        authorize_owner(actor.role, actor.account_id, account_id)
        return RestrictionStatus(restricted=manager.is_restricted(account_id))
    except AccountError as exc:
        raise _http_error(exc) from exc


@router.post("/users/{account_id}/restrict", response_model=UserAccount)
def restrict_user(
    account_id: str,
    payload: RestrictRequest | None = None,
    actor: ActorContext = Depends(get_actor),
    manager: RestrictionManager = Depends(get_restriction_manager),
) -> UserAccount:
    try:
        authorize(actor.role, Action.RESTRICT)
        account = manager.restrict(
            account_id, payload.reason if payload else None, actor=actor.account_id
        )
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _to_schema(account)


@router.post("/users/{account_id}/unrestrict", response_model=UserAccount)
def unrestrict_user(
    account_id: str,
    actor: ActorContext = Depends(get_actor),
    manager: RestrictionManager = Depends(get_restriction_manager),
) -> UserAccount:
    try:
        authorize(actor.role, Action.UNRESTRICT)
        account = manager.unrestrict(account_id, actor=actor.account_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _to_schema(account)


@router.post("/users/{account_id}/approve", response_model=UserAccount)
def approve_user(
    account_id: str,
    actor: ActorContext = Depends(get_actor),
    engine: ApprovalEngine = Depends(get_approval_engine),
) -> UserAccount:
    try:
        account = engine.approve(account_id, actor.role, actor=actor.account_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _to_schema(account)


@router.post("/users/{account_id}/reject", response_model=UserAccount)
def reject_user(
    account_id: str,
    actor: ActorContext = Depends(get_actor),
    engine: ApprovalEngine = Depends(get_approval_engine),
) -> UserAccount:
    try:
        account = engine.reject(account_id, actor.role, actor=actor.account_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _to_schema(account)


@router.delete("/users/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    account_id: str,
    actor: ActorContext = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
) -> Response:
    try:
        authorize(actor.role, Action.DELETE)
        service.delete_account(account_id, actor=actor.account_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit/logs", response_model=AuditLogResponse)
def list_audit_logs(
    account_id: str | None = Query(default=None),
    event_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    actor: ActorContext = Depends(get_actor),
    service: AccountService = Depends(get_account_service),
) -> AuditLogResponse:
    """Return the newest audit events, optionally filtered."""
    try:
        authorize(actor.role, Action.VIEW_AUDIT)
    except AccountError as exc:
        raise _http_error(exc) from exc
    records = service.list_audit_events(
        account_id=account_id, event_type=event_type, limit=limit
    )
    items = [
        AuditLogEntry(
            audit_id=record.audit_id,
            account_id=record.account_id,
            event_type=record.event_type,
            actor=record.actor,
            metadata=record.metadata,
            created_at=record.created_at,
        )
        for record in records
    ]
    return AuditLogResponse(items=items)
