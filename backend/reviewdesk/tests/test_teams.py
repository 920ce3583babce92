import pytest

from reviewdesk import models
from reviewdesk.errors import Forbidden, NotFound, ValidationError
from reviewdesk.services import projects, teams, versions

from .conftest import make_user


def test_creator_becomes_owner(db):
    owner = make_user(db)
    team = teams.create_team(db, "  Studio ", owner)
    assert team.name == "Studio"
    membership = teams.get_membership(db, team.id, owner.id)
    assert membership.role == "owner"
    assert [t.id for t in teams.list_teams(db, owner.id)] == [team.id]


def test_reinvite_overwrites_role(db):
    owner = make_user(db)
    invitee = make_user(db, email="editor@studio.io")
    team = teams.create_team(db, "Studio", owner)
    teams.invite_member(db, team.id, owner, "owner", role="viewer", email="editor@studio.io")
    again = teams.invite_member(db, team.id, owner, "owner", role="member", user_id=invitee.id)
    assert again.role == "member"
    assert len(teams.list_members(db, team.id)) == 2


def test_invite_requires_a_known_user(db):
    owner = make_user(db)
    team = teams.create_team(db, "Studio", owner)
    with pytest.raises(ValidationError):
        teams.invite_member(db, team.id, owner, "owner", role="member")
    with pytest.raises(NotFound):
        teams.invite_member(db, team.id, owner, "owner", role="member", email="ghost@studio.io")


def test_grant_rules(db):
    owner = make_user(db)
    admin = make_user(db)
    member = make_user(db)
    team = teams.create_team(db, "Studio", owner)
    teams.invite_member(db, team.id, owner, "owner", role="admin", user_id=admin.id)
    with pytest.raises(Forbidden):
        teams.invite_member(db, team.id, admin, "admin", role="admin", user_id=member.id)
    with pytest.raises(Forbidden):
        teams.invite_member(db, team.id, owner, "owner", role="owner", user_id=member.id)
    with pytest.raises(ValidationError):
        teams.invite_member(db, team.id, owner, "owner", role="superuser", user_id=member.id)
    teams.invite_member(db, team.id, admin, "admin", role="member", user_id=member.id)
    assert teams.change_role(db, team.id, member.id, "viewer", admin, "admin").role == "viewer"


def test_owner_row_is_immutable(db):
    owner = make_user(db)
    admin = make_user(db)
    team = teams.create_team(db, "Studio", owner)
    teams.invite_member(db, team.id, owner, "owner", role="admin", user_id=admin.id)
    with pytest.raises(Forbidden):
        teams.change_role(db, team.id, owner.id, "member", admin, "admin")
    with pytest.raises(Forbidden):
        teams.remove_member(db, team.id, owner.id, admin, "admin")
    with pytest.raises(Forbidden):
        teams.invite_member(db, team.id, admin, "admin", role="viewer", user_id=owner.id)


def test_remove_member_logs_activity(db):
    owner = make_user(db)
    member = make_user(db)
    team = teams.create_team(db, "Studio", owner)
    teams.invite_member(db, team.id, owner, "owner", role="member", user_id=member.id)
    teams.remove_member(db, team.id, member.id, owner, "owner")
    with pytest.raises(NotFound):
        teams.get_membership(db, team.id, member.id)
    actions = [
        row.action
        for row in db.query(models.ActivityLog).filter(models.ActivityLog.team_id == team.id).all()
    ]
    assert {"team_created", "team_member_invited", "team_member_removed"} <= set(actions)


def test_team_project_requires_membership(db):
    owner = make_user(db)
    outsider = make_user(db)
    team = teams.create_team(db, "Studio", owner)
    with pytest.raises(Forbidden):
        projects.create_project(db, outsider, "Launch", team_id=team.id)
    project = projects.create_project(db, owner, "Launch", team_id=team.id)
    member = make_user(db)
    teams.invite_member(db, team.id, owner, "owner", role="viewer", user_id=member.id)
    assert [p.id for p in projects.list_projects(db, member.id)] == [project.id]
    assert projects.list_projects(db, outsider.id) == []


def test_asset_with_file_starts_the_ledger(db):
    owner = make_user(db)
    project = projects.create_project(db, owner, "Launch")
    asset = projects.create_asset(db, project, owner, "Teaser", media_type="video", file_url="https://cdn/t1.mp4")
    listed = versions.list_versions(db, asset.id)
    assert [v.version_number for v in listed] == [1]
    db.refresh(asset)
    assert asset.file_url == "https://cdn/t1.mp4"

    bare = projects.create_asset(db, project, owner, "Poster", media_type="image")
    assert versions.list_versions(db, bare.id) == []


def test_watchers_are_idempotent(db):
    owner = make_user(db)
    project = projects.create_project(db, owner, "Launch")
    asset = projects.create_asset(db, project, owner, "Teaser")
    projects.watch_asset(db, asset.id, owner.id)
    projects.watch_asset(db, asset.id, owner.id)
    assert projects.list_watchers(db, asset.id) == [owner.id]
    projects.unwatch_asset(db, asset.id, owner.id)
    projects.unwatch_asset(db, asset.id, owner.id)
    assert projects.list_watchers(db, asset.id) == []
