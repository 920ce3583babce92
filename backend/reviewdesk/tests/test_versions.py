import threading
import uuid

import pytest

from reviewdesk import models
from reviewdesk.errors import NotFound, ValidationError
from reviewdesk.rbac import UserPrincipal
from reviewdesk.services import annotations, versions

from .conftest import TestingSessionLocal, make_asset, make_user


def test_versions_number_from_one_and_move_the_pointer(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    v1 = versions.create_version(db, asset.id, "https://cdn/a.mp4", uploaded_by=owner.id)
    v2 = versions.create_version(db, asset.id, "https://cdn/b.mp4", uploaded_by=owner.id, notes="Colour pass")
    assert (v1.version_number, v2.version_number) == (1, 2)
    db.refresh(asset)
    assert asset.file_url == "https://cdn/b.mp4"
    listed = versions.list_versions(db, asset.id)
    assert [v.version_number for v in listed] == [2, 1]


def test_compare_returns_both_versions_with_annotations(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    v1 = versions.create_version(db, asset.id, "A")
    v2 = versions.create_version(db, asset.id, "B")
    result = versions.compare_versions(db, v1.id, v2.id)
    assert result["version_a"].id == v1.id
    assert result["version_b"].id == v2.id
    assert result["annotations_a"] == [] and result["annotations_b"] == []

    annotations.create_annotation(db, v2.id, "pin", [[0.5, 0.5]], timecode_seconds=3.0)
    result = versions.compare_versions(db, v1.id, v2.id)
    assert len(result["annotations_b"]) == 1


def test_compare_with_unknown_version_is_not_found(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    v1 = versions.create_version(db, asset.id, "A")
    with pytest.raises(NotFound):
        versions.compare_versions(db, v1.id, uuid.uuid4())


def test_compare_hides_versions_the_caller_cannot_view(db):
    owner = make_user(db)
    outsider = make_user(db)
    asset = make_asset(db, owner)
    v1 = versions.create_version(db, asset.id, "A")
    v2 = versions.create_version(db, asset.id, "B")
    with pytest.raises(NotFound) as hidden:
        versions.compare_versions(db, v1.id, v2.id, principal=UserPrincipal(outsider))
    with pytest.raises(NotFound) as missing:
        versions.compare_versions(db, uuid.uuid4(), v2.id, principal=UserPrincipal(outsider))
    assert hidden.value.detail == missing.value.detail
    result = versions.compare_versions(db, v1.id, v2.id, principal=UserPrincipal(owner))
    assert result["version_b"].id == v2.id


def test_deleted_numbers_are_not_reused(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    versions.create_version(db, asset.id, "A")
    v2 = versions.create_version(db, asset.id, "B")
    refreshed = versions.delete_version(db, v2.id)
    assert refreshed.file_url == "A"
    v3 = versions.create_version(db, asset.id, "C")
    assert v3.version_number == 3
    db.refresh(asset)
    assert asset.file_url == "C"


def test_deleting_the_last_version_clears_the_pointer(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    v1 = versions.create_version(db, asset.id, "A")
    refreshed = versions.delete_version(db, v1.id)
    assert refreshed.file_url is None


def test_create_version_validates_input(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    with pytest.raises(ValidationError):
        versions.create_version(db, asset.id, "")
    with pytest.raises(NotFound):
        versions.create_version(db, uuid.uuid4(), "A")


def test_concurrent_uploads_get_distinct_numbers(db):
    owner = make_user(db)
    asset = make_asset(db, owner)
    asset_id = asset.id
    uploads = 8
    errors = []
    barrier = threading.Barrier(uploads)

    def upload(i):
        session = TestingSessionLocal()
        try:
            barrier.wait()
            versions.create_version(session, asset_id, f"https://cdn/{i}.mp4")
        except Exception as exc:  # surfaced through the assertion below
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=upload, args=(i,)) for i in range(uploads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    db.expire_all()
    rows = versions.list_versions(db, asset_id)
    numbers = sorted(v.version_number for v in rows)
    assert numbers == list(range(1, uploads + 1))
    newest = rows[0]
    assert db.get(models.Asset, asset_id).file_url == newest.file_url
