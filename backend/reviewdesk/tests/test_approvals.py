import threading
import uuid

import pytest

from reviewdesk import models, notify
from reviewdesk.errors import Conflict, Expired, Forbidden, Unauthorized, ValidationError
from reviewdesk.rbac import GuestPrincipal, UserPrincipal
from reviewdesk.services import approvals, sharing

from .conftest import TestingSessionLocal, make_asset, make_team, make_user


def _step(db, asset, owner, **kwargs):
    return approvals.create_step(db, asset, kwargs.pop("role_label", "Legal"), owner, **kwargs).step


def test_state_is_derived_from_steps(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    assert approvals.approval_state([]) == "in_progress"
    legal = _step(db, asset, owner)
    creative = _step(db, asset, owner, role_label="Creative Director")
    assert (legal.sequence, creative.sequence) == (1, 2)
    assert approvals.approval_state(approvals.list_steps(db, asset.id)) == "in_progress"

    approvals.decide(db, legal.id, UserPrincipal(owner), "approved")
    assert approvals.approval_state(approvals.list_steps(db, asset.id)) == "in_progress"
    approvals.decide(db, creative.id, UserPrincipal(owner), "approved")
    assert approvals.approval_state(approvals.list_steps(db, asset.id)) == "approved"


def test_any_blocking_step_blocks_the_chain(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    first = _step(db, asset, owner)
    second = _step(db, asset, owner, role_label="Brand")
    approvals.decide(db, first.id, UserPrincipal(owner), "approved")
    approvals.decide(db, second.id, UserPrincipal(owner), "changes_requested", note="Logo too small")
    assert approvals.approval_state(approvals.list_steps(db, asset.id)) == "blocked"


def test_steps_are_decidable_out_of_order(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    _step(db, asset, owner)
    last = _step(db, asset, owner, role_label="Final")
    decided = approvals.decide(db, last.id, UserPrincipal(owner), "rejected").step
    assert decided.status == "rejected"


def test_assignee_may_decide_without_team_permission(db):
    owner = make_user(db)
    viewer = make_user(db)
    team = make_team(db, owner, {viewer: "viewer"})
    asset = make_asset(db, owner, team=team)
    step = _step(db, asset, owner, assignee_id=viewer.id)
    decided = approvals.decide(db, step.id, UserPrincipal(viewer), "approved").step
    assert decided.status == "approved"
    assert decided.decided_by == viewer.id


def test_assignee_email_match_counts_as_assignee(db):
    owner = make_user(db)
    outside = make_user(db, email="approver@agency.io")
    asset = make_asset(db, owner)
    step = _step(db, asset, owner, assignee_email="Approver@agency.io")
    assert approvals.decide(db, step.id, UserPrincipal(outside), "approved").step.status == "approved"


def test_non_assignee_without_permission_is_forbidden(db):
    owner = make_user(db)
    viewer = make_user(db)
    team = make_team(db, owner, {viewer: "viewer"})
    asset = make_asset(db, owner, team=team)
    step = _step(db, asset, owner)
    with pytest.raises(Forbidden):
        approvals.decide(db, step.id, UserPrincipal(viewer), "approved")
    db.refresh(step)
    assert step.status == "pending"


def test_decided_step_is_terminal_until_reset(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner)
    approvals.decide(db, step.id, UserPrincipal(owner), "approved")
    with pytest.raises(Conflict):
        approvals.decide(db, step.id, UserPrincipal(owner), "rejected")
    reset = approvals.reset_step(db, step.id, owner)
    assert reset.status == "pending" and reset.decided_at is None
    assert approvals.decide(db, step.id, UserPrincipal(owner), "rejected").step.status == "rejected"


def test_invalid_decision_status(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner)
    with pytest.raises(ValidationError):
        approvals.decide(db, step.id, UserPrincipal(owner), "pending")


def test_concurrent_decisions_first_wins(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step_id = _step(db, asset, owner).id
    owner_id = owner.id
    outcomes = []
    barrier = threading.Barrier(2)

    def decide(status):
        session = TestingSessionLocal()
        try:
            user = session.get(models.User, owner_id)
            barrier.wait()
            approvals.decide(session, step_id, UserPrincipal(user), status)
            outcomes.append(("ok", status))
        except Conflict:
            outcomes.append(("conflict", status))
        finally:
            session.close()

    threads = [threading.Thread(target=decide, args=(s,)) for s in ("approved", "rejected")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(o[0] for o in outcomes) == ["conflict", "ok"]
    winner = next(status for result, status in outcomes if result == "ok")
    db.expire_all()
    assert db.get(models.ApprovalStep, step_id).status == winner


def test_guest_with_approve_permission_can_decide(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner)
    invite = sharing.issue_invite(db, asset, permission="approve", created_by=owner, reviewer_email="c@client.io")
    decided = approvals.decide(db, step.id, GuestPrincipal(invite.token, email="c@client.io"), "approved").step
    assert decided.decided_by is None
    assert decided.decided_by_invite == invite.id


def test_guest_with_comment_permission_cannot_decide(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner)
    invite = sharing.issue_invite(db, asset, permission="comment", created_by=owner)
    with pytest.raises(Forbidden):
        approvals.decide(db, step.id, GuestPrincipal(invite.token), "approved")


def test_guest_with_expired_link_cannot_decide(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner)
    invite = sharing.issue_invite(db, asset, permission="approve", created_by=owner, expires_in_seconds=0)
    with pytest.raises(Expired):
        approvals.decide(db, step.id, GuestPrincipal(invite.token), "approved")


def test_guest_gets_forbidden_for_unknown_or_foreign_step(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    other = make_asset(db, owner)
    foreign_step = _step(db, other, owner)
    invite = sharing.issue_invite(db, asset, permission="approve", created_by=owner)
    guest = GuestPrincipal(invite.token)
    with pytest.raises(Forbidden):
        approvals.decide(db, uuid.uuid4(), guest, "approved")
    with pytest.raises(Forbidden):
        approvals.decide(db, foreign_step.id, guest, "approved")
    db.refresh(foreign_step)
    assert foreign_step.status == approvals.PENDING


def test_bad_token_is_rejected_before_the_step_is_looked_up(db):
    with pytest.raises(Unauthorized):
        approvals.decide(db, uuid.uuid4(), GuestPrincipal("not-a-token"), "approved")


def test_assignee_email_gets_request_and_renudges(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner, assignee_email="legal@corp.io")
    assert [m[0] for m in notify.EMAIL_OUTBOX] == ["legal@corp.io"]
    approvals.notify_assignee(db, step.id, owner)
    result = approvals.notify_assignee(db, step.id, owner)
    assert result["sent_to"] == "legal@corp.io"
    assert len(notify.EMAIL_OUTBOX) == 3
    nudges = (
        db.query(models.ActivityLog)
        .filter(models.ActivityLog.asset_id == asset.id, models.ActivityLog.action == "approval_notification_sent")
        .count()
    )
    assert nudges == 2


def test_notify_without_any_assignee_is_invalid(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    step = _step(db, asset, owner)
    with pytest.raises(ValidationError):
        approvals.notify_assignee(db, step.id, owner)


def test_create_chain_appends_in_order(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    _step(db, asset, owner)
    created = approvals.create_chain(
        db, asset, [{"role_label": "Brand"}, {"role_label": "Legal"}, {"role_label": "Client"}], owner
    )
    assert [c.step.sequence for c in created] == [2, 3, 4]
    assert [s.role_label for s in approvals.list_steps(db, asset.id)] == ["Legal", "Brand", "Legal", "Client"]


def test_decision_notifies_owner_and_watchers(db):
    owner = make_user(db)
    watcher = make_user(db)
    approver = make_user(db)
    team = make_team(db, owner, {watcher: "viewer", approver: "member"})
    asset = make_asset(db, owner, team=team)
    db.add(models.AssetWatcher(asset_id=asset.id, user_id=watcher.id))
    db.commit()
    step = _step(db, asset, owner)
    change = approvals.decide(db, step.id, UserPrincipal(approver), "approved")
    recipients = {n.user_id for n in change.notifications}
    assert recipients == {owner.id, watcher.id}
    assert all(n.event_type == "approval_decided" for n in change.notifications)
