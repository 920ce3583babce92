import pytest
from sqlalchemy import update

from reviewdesk import models, notify
from reviewdesk.errors import NotFound, ValidationError
from reviewdesk.services import notifications

from .conftest import make_asset, make_team, make_user


def _event(asset, actor=None, recipients=(), event_type="comment_added"):
    return notifications.DomainEvent(
        type=event_type,
        title="New comment",
        body="Trim the intro",
        actor_id=actor.id if actor else None,
        actor_name="Dana",
        project_id=asset.project_id,
        asset_id=asset.id,
        affected_user_ids=list(recipients),
    )


def test_dispatch_defaults_to_in_app_and_immediate_email(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    delivered = notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    assert len(delivered) == 1
    assert delivered[0].data["asset_id"] == str(asset.id)
    assert delivered[0].data["action_url"].endswith(f"/assets/{asset.id}")
    assert [m[0] for m in notify.EMAIL_OUTBOX] == [owner.email]
    assert notifications.unread_count(db, owner.id) == 1


def test_actor_is_never_notified_about_their_own_action(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    assert notifications.dispatch(db, _event(asset, actor=owner, recipients=[owner.id])) == []


def test_recipients_without_asset_access_are_skipped(db):
    owner = make_user(db)
    stranger = make_user(db)
    asset = make_asset(db, owner)
    delivered = notifications.dispatch(db, _event(asset, recipients=[owner.id, stranger.id, owner.id]))
    assert [n.user_id for n in delivered] == [owner.id]


def test_preferences_control_channels(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    notifications.set_preference(db, owner.id, "comment_added", in_app_enabled=False)
    assert notifications.dispatch(db, _event(asset, recipients=[owner.id])) == []
    assert len(notify.EMAIL_OUTBOX) == 1

    notify.EMAIL_OUTBOX.clear()
    notifications.set_preference(db, owner.id, "comment_added", in_app_enabled=True, email_frequency="digest")
    assert len(notifications.dispatch(db, _event(asset, recipients=[owner.id]))) == 1
    assert notify.EMAIL_OUTBOX == []

    # other event types keep their defaults
    notifications.dispatch(db, _event(asset, recipients=[owner.id], event_type="version_uploaded"))
    assert len(notify.EMAIL_OUTBOX) == 1


def test_preference_validation(db):
    user = make_user(db)
    with pytest.raises(ValidationError):
        notifications.set_preference(db, user.id, "something_else", in_app_enabled=False)
    with pytest.raises(ValidationError):
        notifications.set_preference(db, user.id, "comment_added", email_frequency="weekly")


def test_list_preferences_fills_defaults(db):
    user = make_user(db)
    notifications.set_preference(db, user.id, "approval_decided", email_enabled=False)
    prefs = {p["event_type"]: p for p in notifications.list_preferences(db, user.id)}
    assert set(prefs) == set(notifications.EVENT_TYPES)
    assert prefs["approval_decided"]["email_enabled"] is False
    assert prefs["comment_added"] == {
        "event_type": "comment_added",
        "in_app_enabled": True,
        "email_enabled": True,
        "email_frequency": "immediate",
    }


def test_mark_read_only_decrements_once(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    first, = notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    assert notifications.unread_count(db, owner.id) == 2

    notifications.mark_read(db, owner.id, first.id)
    notifications.mark_read(db, owner.id, first.id)
    assert notifications.unread_count(db, owner.id) == 1
    assert len(notifications.list_notifications(db, owner.id, unread_only=True)) == 1


def test_mark_read_is_scoped_to_the_owner(db):
    owner = make_user(db)
    other = make_user(db)
    asset = make_asset(db, owner)
    note, = notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    with pytest.raises(NotFound):
        notifications.mark_read(db, other.id, note.id)


def test_mark_all_read_resets_counter(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    for _ in range(3):
        notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    assert notifications.mark_all_read(db, owner.id) == 3
    assert notifications.unread_count(db, owner.id) == 0
    assert notifications.mark_all_read(db, owner.id) == 0


def test_audience_is_owner_and_watchers(db):
    owner = make_user(db)
    watcher = make_user(db)
    team = make_team(db, owner, {watcher: "viewer"})
    asset = make_asset(db, owner, team=team)
    db.add(models.AssetWatcher(asset_id=asset.id, user_id=watcher.id))
    db.commit()
    assert notifications.asset_audience(db, asset) == [owner.id, watcher.id]
    assert notifications.asset_audience(db, asset, exclude=owner.id) == [watcher.id]
    assert notifications.asset_audience(db, asset, include_watchers=False) == [owner.id]


def test_daily_digest_collects_unread_digest_events(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    notifications.set_preference(db, owner.id, "comment_added", email_frequency="digest")
    notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    assert notify.EMAIL_OUTBOX == []

    # digest rows left by earlier tests may belong to other users
    assert notify.send_daily_digest(db) >= 1
    mine = [m for m in notify.EMAIL_OUTBOX if m[0] == owner.email]
    assert len(mine) == 1
    _, subject, html = mine[0]
    assert subject == "Review Notification Digest"
    assert html.count("<li>") == 2

    notify.send_daily_digest(db)
    assert len([m for m in notify.EMAIL_OUTBOX if m[0] == owner.email]) == 1


def test_digest_still_arrives_with_in_app_disabled(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    notifications.set_preference(
        db, owner.id, "comment_added", in_app_enabled=False, email_frequency="digest"
    )
    assert notifications.dispatch(db, _event(asset, recipients=[owner.id])) == []
    assert notify.EMAIL_OUTBOX == []
    assert notifications.list_notifications(db, owner.id) == []
    assert notifications.unread_count(db, owner.id) == 0
    assert notifications.mark_all_read(db, owner.id) == 0

    notify.send_daily_digest(db)
    mine = [m for m in notify.EMAIL_OUTBOX if m[0] == owner.email]
    assert len(mine) == 1
    assert "Trim the intro" in mine[0][2]


def test_digest_only_rows_are_not_readable_from_the_inbox(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    notifications.set_preference(
        db, owner.id, "comment_added", in_app_enabled=False, email_frequency="digest"
    )
    notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    row = db.query(models.Notification).filter(models.Notification.user_id == owner.id).one()
    assert row.delivered_in_app is False
    with pytest.raises(NotFound):
        notifications.mark_read(db, owner.id, row.id)


def test_mark_all_read_keeps_increments_that_land_after_the_flip(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    for _ in range(2):
        notifications.dispatch(db, _event(asset, recipients=[owner.id]))
    # a concurrent dispatch has bumped the counter but its row is not visible yet
    db.execute(
        update(models.User)
        .where(models.User.id == owner.id)
        .values(unread_notification_count=models.User.unread_notification_count + 1)
    )
    db.commit()

    assert notifications.mark_all_read(db, owner.id) == 2
    assert notifications.unread_count(db, owner.id) == 1


def test_dispatch_survives_audience_lookup_failure(db, monkeypatch):
    owner = make_user(db)
    watcher = make_user(db)
    asset = make_asset(db, owner)

    def broken(*args, **kwargs):
        raise RuntimeError("watchers table unavailable")

    monkeypatch.setattr(notifications, "asset_audience", broken)
    event = _event(asset, recipients=[watcher.id])
    event.include_asset_audience = True
    assert notifications.dispatch(db, event) == []

    event = _event(asset, recipients=[owner.id])
    event.include_asset_audience = True
    delivered = notifications.dispatch(db, event)
    assert [n.user_id for n in delivered] == [owner.id]
