from __future__ import annotations

import pytest

from app.domain.account import Role
from app.domain.errors import ForbiddenError
from app.domain.policy import Action, authorize, authorize_owner, target_roles

WORKFLOW_ACTIONS = [Action.APPROVE, Action.REJECT, Action.LIST_PENDING, Action.LIST_REJECTED]


@pytest.mark.parametrize("action", WORKFLOW_ACTIONS)
def test_faculty_acts_on_faculty_only(action):
    assert target_roles("FACULTY", action) == {Role.FACULTY}
    assert authorize("FACULTY", action, Role.FACULTY) is Role.FACULTY
    with pytest.raises(ForbiddenError, match="FACULTY members can only"):
        authorize("FACULTY", action, Role.ADMIN)
    with pytest.raises(ForbiddenError):
        authorize("FACULTY", action, Role.STUDENT)


@pytest.mark.parametrize("action", WORKFLOW_ACTIONS)
def test_admin_acts_on_faculty_and_admin(action):
    assert target_roles("ADMIN", action) == {Role.FACULTY, Role.ADMIN}
    authorize("ADMIN", action, Role.FACULTY)
    authorize("ADMIN", action, Role.ADMIN)
    with pytest.raises(ForbiddenError, match="ADMIN members can only"):
        authorize("ADMIN", action, Role.STUDENT)


@pytest.mark.parametrize("action", WORKFLOW_ACTIONS)
@pytest.mark.parametrize("actor", ["STUDENT", "janitor", ""])
def test_other_actors_are_forbidden(action, actor):
    with pytest.raises(ForbiddenError, match="Only FACULTY and ADMIN members"):
        target_roles(actor, action)


@pytest.mark.parametrize("actor", ["admin", "Admin", " ADMIN"])
def test_actor_role_must_match_exactly(actor):
    with pytest.raises(ForbiddenError):
        authorize(actor, Action.APPROVE, Role.ADMIN)
    with pytest.raises(ForbiddenError):
        target_roles(actor, Action.LIST_PENDING)


@pytest.mark.parametrize(
    "action", [Action.LIST_ALL, Action.RESTRICT, Action.UNRESTRICT, Action.DELETE, Action.VIEW_AUDIT]
)
def test_administrative_actions_are_admin_only(action):
    authorize("ADMIN", action)
    for actor in ("FACULTY", "STUDENT"):
        with pytest.raises(ForbiddenError, match="Only ADMIN members"):
            authorize(actor, action)


def test_search_is_open_to_staff():
    authorize("FACULTY", Action.SEARCH)
    authorize("ADMIN", Action.SEARCH)
    with pytest.raises(ForbiddenError):
        authorize("STUDENT", Action.SEARCH)


def test_owner_or_admin_may_read_account():
    authorize_owner("STUDENT", "abc", "abc")
    authorize_owner("ADMIN", "other", "abc")
    with pytest.raises(ForbiddenError):
        authorize_owner("FACULTY", "other", "abc")
    with pytest.raises(ForbiddenError):
        authorize_owner("STUDENT", None, "abc")
