import os

import pytest

from reviewdesk import models, storage
from reviewdesk.errors import PayloadTooLarge, ValidationError
from reviewdesk.rbac import GuestPrincipal, UserPrincipal
from reviewdesk.services import comments, sharing

from .conftest import make_asset, make_user


def test_comment_lifecycle(db):
    owner = make_user(db, full_name="Dana Editor")
    asset = make_asset(db, owner)
    comment = comments.add_comment(db, asset, UserPrincipal(owner), "  Trim the intro ", timecode_seconds=12.5)
    assert comment.body == "Trim the intro"
    assert comment.author_name == "Dana Editor"
    assert comment.status == "open"

    resolved = comments.resolve_comment(db, comment.id, resolved_by=owner.id)
    assert resolved.status == "resolved" and resolved.resolved_at is not None
    assert [c.id for c in comments.list_comments(db, asset.id, status="resolved")] == [comment.id]
    assert comments.list_comments(db, asset.id, status="open") == []

    reopened = comments.reopen_comment(db, comment.id)
    assert reopened.status == "open" and reopened.resolved_by is None

    comments.delete_comment(db, comment.id)
    assert comments.list_comments(db, asset.id) == []


def test_comment_requires_body_and_same_asset_parent(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    other = make_asset(db, owner)
    with pytest.raises(ValidationError):
        comments.add_comment(db, asset, UserPrincipal(owner), "   ")
    foreign = comments.add_comment(db, other, UserPrincipal(owner), "elsewhere")
    with pytest.raises(ValidationError):
        comments.add_comment(db, asset, UserPrincipal(owner), "reply", parent_id=foreign.id)


def test_replies_are_removed_with_their_parent(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    parent = comments.add_comment(db, asset, UserPrincipal(owner), "root")
    comments.add_comment(db, asset, UserPrincipal(owner), "reply", parent_id=parent.id)
    comments.delete_comment(db, parent.id)
    assert comments.list_comments(db, asset.id) == []


def test_guest_comment_uses_invite_descriptor(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    invite = sharing.issue_invite(
        db, asset, permission="comment", created_by=owner, reviewer_name="Client", send_invitation=False
    )
    comment = comments.add_comment(db, asset, GuestPrincipal(invite.token), "Love it", invite=invite)
    assert comment.author_id is None
    assert comment.author_name == "Client"
    assert comment.invite_id == invite.id


def test_reaction_upsert_is_idempotent(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    comment = comments.add_comment(db, asset, UserPrincipal(owner), "Nice")
    first = comments.add_reaction(db, comment.id, owner.id, "👍")
    second = comments.add_reaction(db, comment.id, owner.id, "👍")
    assert first.id == second.id
    comments.add_reaction(db, comment.id, owner.id, "🎉")
    assert [r.emoji for r in comments.list_reactions(db, comment.id)] == ["👍", "🎉"]


def test_removing_a_missing_reaction_succeeds(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    comment = comments.add_comment(db, asset, UserPrincipal(owner), "Nice")
    comments.remove_reaction(db, comment.id, owner.id, "🔥")
    comments.add_reaction(db, comment.id, owner.id, "🔥")
    comments.remove_reaction(db, comment.id, owner.id, "🔥")
    assert comments.list_reactions(db, comment.id) == []


def test_attachment_is_stored_and_listed(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    comment = comments.add_comment(db, asset, UserPrincipal(owner), "See notes")
    attachment = comments.add_attachment(db, comment.id, "notes.txt", b"hello", "text/plain", owner.id)
    assert attachment.file_size == 5
    assert os.path.exists(attachment.file_url)
    assert [a.id for a in comments.list_attachments(db, comment.id)] == [attachment.id]


def test_oversized_attachment_is_refused_before_storage(db, monkeypatch):
    owner = make_user(db)
    asset = make_asset(db, owner)
    comment = comments.add_comment(db, asset, UserPrincipal(owner), "Big file")
    writes = []
    monkeypatch.setattr(storage, "put_object", lambda *args, **kwargs: writes.append(args))
    with pytest.raises(PayloadTooLarge):
        comments.add_attachment(db, comment.id, "huge.bin", b"\0" * (storage.MAX_UPLOAD_BYTES + 1))
    assert writes == []
    assert db.query(models.CommentAttachment).filter_by(comment_id=comment.id).count() == 0
