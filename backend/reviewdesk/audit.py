from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session
from . import models


def log_activity(
    db: Session,
    actor_id: UUID | None,
    actor_name: str,
    action: str,
    project_id: UUID | None = None,
    asset_id: UUID | None = None,
    team_id: UUID | None = None,
    details: dict | None = None,
    commit: bool = True,
) -> models.ActivityLog:
    entry = models.ActivityLog(
        actor_id=actor_id,
        actor_name=actor_name or "Anonymous",
        action=action,
        project_id=project_id,
        asset_id=asset_id,
        team_id=team_id,
        details=details or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    return entry


def list_project_activity(db: Session, project_id: UUID, limit: int = 100):
    return (
        db.query(models.ActivityLog)
        .filter(models.ActivityLog.project_id == project_id)
        .order_by(models.ActivityLog.created_at.desc())
        .limit(limit)
        .all()
    )


def list_team_activity(db: Session, team_id: UUID, limit: int = 100):
    return (
        db.query(models.ActivityLog)
        .filter(models.ActivityLog.team_id == team_id)
        .order_by(models.ActivityLog.created_at.desc())
        .limit(limit)
        .all()
    )


def touch_project(db: Session, project_id: UUID) -> None:
    """Bump the project's last-updated timestamp after a child mutation."""

    db.query(models.Project).filter(models.Project.id == project_id).update(
        {models.Project.updated_at: datetime.now(timezone.utc)},
        synchronize_session=False,
    )
