"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class CreateAccountInput:
    """Validated inputs required to register an account."""

    username: str
    email: str
    password: str = field(repr=False)
    requested_role: str | None = None


@dataclass(slots=True)
class ActorContext:
    """Identity of the caller as asserted by the upstream gateway.

    The gateway authenticates the session before forwarding the request, so both values
    are trusted verbatim. ``role`` is kept as the raw header string; the permission table
    decides what an unrecognised value may do (nothing).
    """

    role: str
    account_id: str | None = None
