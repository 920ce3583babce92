"""Projects, their assets and asset watchers."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models
from ..audit import log_activity
from ..errors import Forbidden, NotFound, ValidationError
from ..rbac import get_team_role
from . import versions

MEDIA_TYPES = ("video", "audio", "image", "document", "other")


def _actor_name(user: models.User) -> str:
    return user.full_name or user.email


def create_project(
    db: Session,
    owner: models.User,
    name: str,
    description: str | None = None,
    team_id: UUID | None = None,
) -> models.Project:
    if not name or not name.strip():
        raise ValidationError("Project name is required")
    if team_id is not None:
        role = get_team_role(db, team_id, owner.id)
        if role is None:
            raise Forbidden("Not a member of this team")
    project = models.Project(name=name.strip(), description=description, owner_id=owner.id, team_id=team_id)
    db.add(project)
    db.commit()
    db.refresh(project)
    log_activity(
        db, owner.id, _actor_name(owner), "project_created", project_id=project.id, team_id=team_id,
        details={"name": project.name},
    )
    return project


def list_projects(db: Session, user_id: UUID) -> list[models.Project]:
    """Projects the user owns or can reach through a team membership."""

    team_ids = db.query(models.TeamMember.team_id).filter(models.TeamMember.user_id == user_id)
    return (
        db.query(models.Project)
        .filter(or_(models.Project.owner_id == user_id, models.Project.team_id.in_(team_ids)))
        .order_by(models.Project.updated_at.desc())
        .all()
    )


def update_project(db: Session, project: models.Project, changes: dict) -> models.Project:
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("Project name is required")
    for key in ("name", "description"):
        if key in changes:
            setattr(project, key, changes[key])
    project.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, project: models.Project) -> None:
    db.delete(project)
    db.commit()


def create_asset(
    db: Session,
    project: models.Project,
    creator: models.User,
    title: str,
    media_type: str = "video",
    file_url: str | None = None,
    file_size: int | None = None,
    notes: str | None = None,
) -> models.Asset:
    """Create an asset; a supplied ``file_url`` becomes version 1 through the ledger."""

    if not title or not title.strip():
        raise ValidationError("Asset title is required")
    if media_type not in MEDIA_TYPES:
        raise ValidationError(f"media_type must be one of {', '.join(MEDIA_TYPES)}")
    asset = models.Asset(
        project_id=project.id,
        title=title.strip(),
        media_type=media_type,
        created_by=creator.id,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    if file_url:
        versions.create_version(db, asset.id, file_url, uploaded_by=creator.id, file_size=file_size, notes=notes)
        db.refresh(asset)
    log_activity(
        db,
        creator.id,
        _actor_name(creator),
        "uploaded_asset",
        project_id=project.id,
        asset_id=asset.id,
        details={"asset_title": asset.title, "media_type": media_type},
    )
    return asset


def get_asset(db: Session, asset_id: UUID) -> models.Asset:
    asset = db.get(models.Asset, asset_id)
    if asset is None:
        raise NotFound("Asset not found")
    return asset


def list_assets(db: Session, project_id: UUID) -> list[models.Asset]:
    return (
        db.query(models.Asset)
        .filter(models.Asset.project_id == project_id)
        .order_by(models.Asset.created_at.desc())
        .all()
    )


def update_asset(db: Session, asset: models.Asset, title: str | None = None, media_type: str | None = None):
    if title is not None:
        if not title.strip():
            raise ValidationError("Asset title is required")
        asset.title = title.strip()
    if media_type is not None:
        if media_type not in MEDIA_TYPES:
            raise ValidationError(f"media_type must be one of {', '.join(MEDIA_TYPES)}")
        asset.media_type = media_type
    asset.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(asset)
    return asset


def delete_asset(db: Session, asset: models.Asset) -> None:
    db.delete(asset)
    db.commit()


def watch_asset(db: Session, asset_id: UUID, user_id: UUID) -> models.AssetWatcher:
    watcher = db.get(models.AssetWatcher, (asset_id, user_id))
    if watcher is None:
        watcher = models.AssetWatcher(asset_id=asset_id, user_id=user_id)
        db.add(watcher)
        db.commit()
        db.refresh(watcher)
    return watcher


def unwatch_asset(db: Session, asset_id: UUID, user_id: UUID) -> None:
    (
        db.query(models.AssetWatcher)
        .filter(models.AssetWatcher.asset_id == asset_id, models.AssetWatcher.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()


def list_watchers(db: Session, asset_id: UUID) -> list[UUID]:
    return [
        row[0]
        for row in db.query(models.AssetWatcher.user_id).filter(models.AssetWatcher.asset_id == asset_id).all()
    ]
