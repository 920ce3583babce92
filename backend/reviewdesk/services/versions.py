"""Append-only version ledger for review assets."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, rbac
from ..audit import touch_project
from ..errors import Conflict, NotFound, ValidationError

# purpose: assign strictly increasing version numbers and keep the asset's file pointer on the newest version
# status: active

logger = logging.getLogger(__name__)

_INSERT_ATTEMPTS = 2


def _claim_version_number(db: Session, asset_id: UUID) -> int:
    """Reserve the next number for ``asset_id``.

    The counter bump is a single UPDATE, so it takes the asset row lock and
    holds it until the caller commits. Concurrent uploads for the same asset
    queue behind it and see the incremented counter.
    """

    result = db.execute(
        update(models.Asset)
        .where(models.Asset.id == asset_id)
        .values(version_count=models.Asset.version_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFound("Asset not found")
    counter = db.execute(
        select(models.Asset.version_count).where(models.Asset.id == asset_id)
    ).scalar_one()
    highest = db.execute(
        select(func.max(models.Version.version_number)).where(models.Version.asset_id == asset_id)
    ).scalar()
    next_number = max(counter, (highest or 0) + 1)
    if next_number != counter:
        db.execute(
            update(models.Asset)
            .where(models.Asset.id == asset_id)
            .values(version_count=next_number)
            .execution_options(synchronize_session=False)
        )
    return next_number


def create_version(
    db: Session,
    asset_id: UUID,
    file_url: str,
    uploaded_by: UUID | None = None,
    file_size: int | None = None,
    notes: str | None = None,
) -> models.Version:
    """Insert the next version of an asset and repoint ``asset.file_url`` at it.

    Number assignment, insert and pointer update commit together. A lost race
    on the unique (asset, number) constraint is retried once with a freshly
    claimed number before surfacing ``Conflict``.
    """

    if not file_url:
        raise ValidationError("file_url is required")
    if file_size is not None and file_size < 0:
        raise ValidationError("file_size must be positive")

    for attempt in range(1, _INSERT_ATTEMPTS + 1):
        try:
            number = _claim_version_number(db, asset_id)
            version = models.Version(
                asset_id=asset_id,
                version_number=number,
                file_url=file_url,
                file_size=file_size,
                notes=notes,
                uploaded_by=uploaded_by,
            )
            db.add(version)
            db.flush()
            now = datetime.now(timezone.utc)
            db.execute(
                update(models.Asset)
                .where(models.Asset.id == asset_id)
                .values(file_url=file_url, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            project_id = db.execute(
                select(models.Asset.project_id).where(models.Asset.id == asset_id)
            ).scalar_one()
            touch_project(db, project_id)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info("Version number race on asset %s (attempt %s)", asset_id, attempt)
            continue
        db.refresh(version)
        asset = db.get(models.Asset, asset_id)
        if asset is not None:
            db.refresh(asset)
        return version
    raise Conflict("Could not assign a version number, retry the upload")


def get_version(db: Session, version_id: UUID) -> models.Version:
    version = db.get(models.Version, version_id)
    if version is None:
        raise NotFound("Version not found")
    return version


def list_versions(db: Session, asset_id: UUID) -> list[models.Version]:
    return (
        db.query(models.Version)
        .filter(models.Version.asset_id == asset_id)
        .order_by(models.Version.version_number.desc())
        .all()
    )


def _visible_version(db: Session, version_id: UUID, principal: rbac.Principal | None) -> models.Version:
    version = db.get(models.Version, version_id)
    if version is None:
        raise NotFound("Version not found")
    if principal is not None and not rbac.authorize_asset(db, principal, version.asset, "asset.view"):
        # indistinguishable from a missing id
        raise NotFound("Version not found")
    return version


def compare_versions(
    db: Session,
    version_a_id: UUID,
    version_b_id: UUID,
    principal: rbac.Principal | None = None,
) -> dict:
    """Return both versions with their annotations.

    With a ``principal``, versions it may not view are reported exactly like
    unknown ids, as ``NotFound``.
    """

    version_a = _visible_version(db, version_a_id, principal)
    version_b = _visible_version(db, version_b_id, principal)
    return {
        "version_a": version_a,
        "version_b": version_b,
        "annotations_a": list(version_a.annotations),
        "annotations_b": list(version_b.annotations),
    }


def delete_version(db: Session, version_id: UUID) -> models.Asset:
    """Remove one version; the number is not reused and the pointer moves to the newest survivor."""

    version = get_version(db, version_id)
    asset_id = version.asset_id
    db.delete(version)
    db.flush()
    newest_url = (
        select(models.Version.file_url)
        .where(models.Version.asset_id == asset_id)
        .order_by(models.Version.version_number.desc())
        .limit(1)
        .scalar_subquery()
    )
    db.execute(
        update(models.Asset)
        .where(models.Asset.id == asset_id)
        .values(file_url=newest_url, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    asset = db.get(models.Asset, asset_id)
    db.refresh(asset)
    return asset
