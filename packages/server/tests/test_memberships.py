"""
Membership registry service tests.
"""

from __future__ import annotations

import uuid

import pytest

from taskflow.core.errors import AlreadyMember, AuthorizationError, ConflictError, InvalidRole, NotFoundError
from taskflow.services import memberships, organizations
from taskflow_shared.schemas.common import Role


@pytest.fixture
async def org_with_owner(session, make_user):
    owner = await make_user("owner@example.com", first_name="Olivia")
    org = await organizations.create_org("Acme", owner, session)
    return org, owner


@pytest.mark.asyncio
async def test_create_org_makes_owner_admin(session, org_with_owner):
    org, owner = org_with_owner
    membership = await memberships.get_membership(owner.id, org.id, session)
    assert membership.role == "admin"
    assert org.slug == "acme"


@pytest.mark.asyncio
async def test_slug_collision_gets_suffix(session, make_user, org_with_owner):
    other = await make_user("other@example.com")
    second = await organizations.create_org("Acme", other, session)
    assert second.slug.startswith("acme-")
    assert second.slug != "acme"


@pytest.mark.asyncio
async def test_join_normalizes_role(session, make_user, org_with_owner):
    org, _ = org_with_owner
    user = await make_user("lead@example.com")
    membership = await memberships.join(user.id, org.id, "Team Lead", session)
    assert membership.role == "team_lead"


@pytest.mark.asyncio
async def test_join_twice_rejected(session, make_user, org_with_owner):
    org, _ = org_with_owner
    user = await make_user("m@example.com")
    await memberships.join(user.id, org.id, Role.MEMBER, session)
    with pytest.raises(AlreadyMember):
        await memberships.join(user.id, org.id, Role.ADMIN, session)


@pytest.mark.asyncio
async def test_join_invalid_role(session, make_user, org_with_owner):
    org, _ = org_with_owner
    user = await make_user("m@example.com")
    with pytest.raises(InvalidRole):
        await memberships.join(user.id, org.id, "owner", session)
    assert await memberships.get_membership(user.id, org.id, session) is None


@pytest.mark.asyncio
async def test_authorize(session, make_user, org_with_owner):
    org, owner = org_with_owner
    member = await make_user("m@example.com")
    await memberships.join(member.id, org.id, Role.MEMBER, session)

    assert await memberships.authorize(owner.id, org.id, [Role.ADMIN], session)
    assert await memberships.authorize(member.id, org.id, ["member", "admin"], session)
    assert not await memberships.authorize(member.id, org.id, [Role.ADMIN, Role.TEAM_LEAD], session)
    # No membership means no privilege.
    assert not await memberships.authorize(uuid.uuid4(), org.id, list(Role), session)

    with pytest.raises(AuthorizationError):
        await memberships.require_role(member.id, org.id, [Role.ADMIN], session)


@pytest.mark.asyncio
async def test_is_admin_anywhere(session, make_user, org_with_owner):
    _, owner = org_with_owner
    loner = await make_user("loner@example.com")
    assert await memberships.is_admin_anywhere(owner.id, session)
    assert not await memberships.is_admin_anywhere(loner.id, session)


@pytest.mark.asyncio
async def test_list_user_orgs_and_members(session, make_user, org_with_owner):
    org, owner = org_with_owner
    member = await make_user("m@example.com", first_name="Max")
    await memberships.join(member.id, org.id, Role.MEMBER, session)

    orgs = await memberships.list_user_orgs(member.id, session)
    assert [(o["id"], o["role"]) for o in orgs] == [(org.id, "member")]

    members = await memberships.list_members(org.id, session)
    assert {m["email"]: m["role"] for m in members} == {
        "owner@example.com": "admin",
        "m@example.com": "member",
    }


@pytest.mark.asyncio
async def test_change_role(session, make_user, org_with_owner):
    org, _ = org_with_owner
    member = await make_user("m@example.com")
    await memberships.join(member.id, org.id, Role.MEMBER, session)

    updated = await memberships.change_role(org.id, member.id, "team-lead", session)
    assert updated.role == "team_lead"


@pytest.mark.asyncio
async def test_last_admin_cannot_be_demoted_or_removed(session, org_with_owner):
    org, owner = org_with_owner
    with pytest.raises(ConflictError):
        await memberships.change_role(org.id, owner.id, Role.MEMBER, session)
    with pytest.raises(ConflictError):
        await memberships.remove_member(org.id, owner.id, session)


@pytest.mark.asyncio
async def test_admin_can_step_down_when_another_admin_exists(session, make_user, org_with_owner):
    org, owner = org_with_owner
    second = await make_user("second@example.com")
    await memberships.join(second.id, org.id, Role.ADMIN, session)

    await memberships.change_role(org.id, owner.id, Role.MEMBER, session)
    assert not await memberships.authorize(owner.id, org.id, [Role.ADMIN], session)


@pytest.mark.asyncio
async def test_remove_member(session, make_user, org_with_owner):
    org, _ = org_with_owner
    member = await make_user("m@example.com")
    await memberships.join(member.id, org.id, Role.MEMBER, session)

    await memberships.remove_member(org.id, member.id, session)
    assert await memberships.get_membership(member.id, org.id, session) is None

    with pytest.raises(NotFoundError):
        await memberships.remove_member(org.id, member.id, session)
