"""Permission table deciding which actor role may act on which target role."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .account import Role
from .errors import ForbiddenError


class Action(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    LIST_PENDING = "view pending users"
    LIST_REJECTED = "view rejected users"
    LIST_ALL = "list users"
    SEARCH = "search users"
    RESTRICT = "restrict users"
    UNRESTRICT = "unrestrict users"
    DELETE = "delete users"
    VIEW_AUDIT = "view the audit log"


_ALL_ROLES = frozenset(Role)
_APPROVERS: Mapping[Role, frozenset[Role]] = MappingProxyType(
    {
        Role.FACULTY: frozenset({Role.FACULTY}),
        Role.ADMIN: frozenset({Role.FACULTY, Role.ADMIN}),
    }
)
_ADMIN_ONLY: Mapping[Role, frozenset[Role]] = MappingProxyType({Role.ADMIN: _ALL_ROLES})

# action -> actor role -> target roles the actor may act on
PERMISSIONS: Mapping[Action, Mapping[Role, frozenset[Role]]] = MappingProxyType(
    {
        Action.APPROVE: _APPROVERS,
        Action.REJECT: _APPROVERS,
        Action.LIST_PENDING: _APPROVERS,
        Action.LIST_REJECTED: _APPROVERS,
        Action.LIST_ALL: _ADMIN_ONLY,
        Action.SEARCH: MappingProxyType({Role.FACULTY: _ALL_ROLES, Role.ADMIN: _ALL_ROLES}),
        Action.RESTRICT: _ADMIN_ONLY,
        Action.UNRESTRICT: _ADMIN_ONLY,
        Action.DELETE: _ADMIN_ONLY,
        Action.VIEW_AUDIT: _ADMIN_ONLY,
    }
)


def target_roles(actor_role: str | Role, action: Action) -> frozenset[Role]:
    """Return the target roles ``actor_role`` may act on, raising when there are none."""
    role = actor_role if isinstance(actor_role, Role) else Role.parse(actor_role)
    grants = PERMISSIONS[action]
    allowed = grants.get(role) if role is not None else None
    if not allowed:
        actors = " and ".join(r.value for r in Role if r in grants)
        raise ForbiddenError(f"Only {actors} members can {action.value}")
    return allowed


def authorize_owner(actor_role: str, actor_id: str | None, account_id: str) -> None:
    """Allow an actor to read their own account; ADMIN may read any account."""
    if actor_id is not None and actor_id == account_id:
        return
    if Role.parse(actor_role) is Role.ADMIN:
        return
    raise ForbiddenError("You can only access your own account")


def authorize(actor_role: str | Role, action: Action, target_role: Role | None = None) -> Role:
    """Check ``actor_role`` may perform ``action`` on an account with ``target_role``.

    Returns the parsed actor role. Raises :class:`ForbiddenError` otherwise.
    """
    allowed = target_roles(actor_role, action)
    role = actor_role if isinstance(actor_role, Role) else Role.parse(actor_role)
    if target_role is not None and target_role not in allowed:
        targets = " and ".join(r.value for r in Role if r in allowed)
        raise ForbiddenError(f"{role.value} members can only {action.value} {targets} members")
    return role
