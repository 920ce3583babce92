import uuid
from datetime import datetime, timedelta, timezone

import pytest

from reviewdesk import models, rbac
from reviewdesk.errors import Expired, Forbidden, NotFound, Unauthorized
from reviewdesk.rbac import DenialReason, GuestPrincipal, UserPrincipal
from reviewdesk.services import sharing

from .conftest import make_asset, make_team, make_user


def test_non_member_is_denied_with_reason(db):
    owner = make_user(db)
    outsider = make_user(db)
    team = make_team(db, owner)
    decision = rbac.authorize_team(db, UserPrincipal(outsider), team.id, "project.view")
    assert not decision
    assert decision.reason == DenialReason.NOT_MEMBER


def test_member_role_is_checked_against_table(db):
    owner = make_user(db)
    viewer = make_user(db)
    team = make_team(db, owner, {viewer: "viewer"})
    assert rbac.authorize_team(db, UserPrincipal(viewer), team.id, "comment.create")
    denied = rbac.authorize_team(db, UserPrincipal(viewer), team.id, "asset.upload")
    assert denied.reason == DenialReason.NOT_PERMITTED
    allowed = rbac.authorize_team(db, UserPrincipal(owner), team.id, "team.manage")
    assert allowed.role == "owner"


def test_project_owner_acts_as_owner_without_team(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    decision = rbac.authorize_asset(db, UserPrincipal(owner), asset, "asset.delete")
    assert decision.allowed and decision.role == "owner"


def test_team_role_applies_to_team_projects(db):
    owner = make_user(db)
    member = make_user(db)
    team = make_team(db, owner, {member: "member"})
    asset = make_asset(db, owner, team=team)
    assert rbac.authorize_asset(db, UserPrincipal(member), asset, "version.upload")
    assert not rbac.authorize_asset(db, UserPrincipal(member), asset, "asset.delete")


def test_membership_changes_apply_on_next_check(db):
    owner = make_user(db)
    member = make_user(db)
    team = make_team(db, owner, {member: "member"})
    asset = make_asset(db, owner, team=team)
    principal = UserPrincipal(member)
    assert rbac.authorize_asset(db, principal, asset, "asset.upload")
    membership = db.get(models.TeamMember, (team.id, member.id))
    membership.role = "viewer"
    db.commit()
    assert not rbac.authorize_asset(db, principal, asset, "asset.upload")


def test_guest_with_unknown_token_is_invalid(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    decision = rbac.authorize_asset(db, GuestPrincipal("missing-token"), asset, "asset.view")
    assert decision.reason == DenialReason.INVALID_TOKEN
    with pytest.raises(Unauthorized):
        rbac.raise_for_decision(decision)


def test_guest_scope_is_limited_to_invite_asset(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    other = make_asset(db, owner)
    invite = sharing.issue_invite(db, asset, permission="approve", created_by=owner)
    guest = GuestPrincipal(invite.token)
    assert rbac.authorize_asset(db, guest, asset, "approval.decide")
    decision = rbac.authorize_asset(db, guest, other, "asset.view")
    assert decision.reason == DenialReason.OUT_OF_SCOPE
    with pytest.raises(Forbidden):
        rbac.raise_for_decision(decision)


@pytest.mark.parametrize("permission", ["view", "comment", "approve"])
def test_expired_invite_denies_every_action(db, permission):
    owner = make_user(db)
    asset = make_asset(db, owner)
    invite = sharing.issue_invite(db, asset, permission=permission, created_by=owner)
    invite.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    db.commit()
    for action in ("asset.view", "comment.create", "approval.decide"):
        decision = rbac.authorize_asset(db, GuestPrincipal(invite.token), asset, action)
        assert decision.reason == DenialReason.EXPIRED
    with pytest.raises(Expired):
        rbac.raise_for_decision(decision)


def test_guests_cannot_act_on_teams_or_projects(db):
    owner = make_user(db)
    team = make_team(db, owner)
    asset = make_asset(db, owner, team=team)
    invite = sharing.issue_invite(db, asset, permission="approve", created_by=owner)
    guest = GuestPrincipal(invite.token)
    assert not rbac.authorize_team(db, guest, team.id, "project.view")
    assert not rbac.authorize_project(db, guest, asset.project, "project.view")


def test_ensure_helpers_raise_not_found(db):
    user = make_user(db)
    with pytest.raises(NotFound):
        rbac.ensure_asset_access(db, UserPrincipal(user), uuid.uuid4(), "asset.view")
    with pytest.raises(NotFound):
        rbac.ensure_project_access(db, UserPrincipal(user), uuid.uuid4(), "project.view")
    with pytest.raises(NotFound):
        rbac.ensure_team_permission(db, UserPrincipal(user), uuid.uuid4(), "project.view")
