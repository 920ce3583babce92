"""Project review analytics: activity counts, decision turnaround and per-reviewer stats."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from ..rbac import as_utc
from .approvals import PENDING, approval_state

TREND_DAYS = 30
APPROVED_STATUSES = ("approved",)


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / 3600


def _round_hours(total: float, count: int) -> float:
    return round(total / count, 1) if count else 0.0


def _project_assets(db: Session, project_id: UUID) -> list[models.Asset]:
    return db.query(models.Asset).filter(models.Asset.project_id == project_id).all()


def project_summary(db: Session, project_id: UUID, now: datetime | None = None) -> dict:
    """Aggregate review activity for one project.

    ``comments_per_day`` always covers the last 30 days, oldest first, with
    zero-filled gaps.
    """

    now = now or datetime.now(timezone.utc)
    assets = _project_assets(db, project_id)
    asset_ids = [a.id for a in assets]

    steps = []
    comments = []
    if asset_ids:
        steps = db.query(models.ApprovalStep).filter(models.ApprovalStep.asset_id.in_(asset_ids)).all()
        comments = db.query(models.Comment).filter(models.Comment.asset_id.in_(asset_ids)).all()

    steps_by_asset: dict = defaultdict(list)
    for step in steps:
        steps_by_asset[step.asset_id].append(step)
    active_reviews = sum(
        1 for asset_steps in steps_by_asset.values() if approval_state(asset_steps) == "in_progress"
    )

    decisions: Counter = Counter()
    turnaround = 0.0
    timed = 0
    for step in steps:
        if step.status == PENDING:
            continue
        decisions[step.status] += 1
        decided, created = as_utc(step.decided_at), as_utc(step.created_at)
        if decided and created:
            turnaround += _hours(decided - created)
            timed += 1

    week_ago = now - timedelta(days=7)
    window_start = (now - timedelta(days=TREND_DAYS - 1)).date()
    per_day: Counter = Counter()
    comments_this_week = 0
    for comment in comments:
        created = as_utc(comment.created_at)
        if created is None:
            continue
        if created >= week_ago:
            comments_this_week += 1
        if created.date() >= window_start:
            per_day[created.date().isoformat()] += 1

    comments_per_day = []
    for offset in range(TREND_DAYS):
        day = (window_start + timedelta(days=offset)).isoformat()
        comments_per_day.append({"date": day, "count": per_day.get(day, 0)})

    return {
        "project_id": project_id,
        "total_assets": len(assets),
        "active_reviews": active_reviews,
        "comments_this_week": comments_this_week,
        "avg_approval_hours": _round_hours(turnaround, timed),
        "comments_per_day": comments_per_day,
        "decisions": dict(decisions),
    }


def reviewer_stats(db: Session, project_id: UUID) -> list[dict]:
    """Per-reviewer decisions, approval rate, response time and comment count, keyed by email."""

    asset_ids = [a.id for a in _project_assets(db, project_id)]
    if not asset_ids:
        return []
    steps = db.query(models.ApprovalStep).filter(models.ApprovalStep.asset_id.in_(asset_ids)).all()
    comments = (
        db.query(models.Comment.author_email)
        .filter(models.Comment.asset_id.in_(asset_ids), models.Comment.author_email.isnot(None))
        .all()
    )

    stats: dict = {}

    def entry(email: str) -> dict:
        key = email.lower()
        if key not in stats:
            stats[key] = {"decisions": 0, "approvals": 0, "response_hours": 0.0, "timed": 0, "comments": 0}
        return stats[key]

    for step in steps:
        if not step.assignee_email:
            continue
        row = entry(step.assignee_email)
        if step.status == PENDING:
            continue
        row["decisions"] += 1
        if step.status in APPROVED_STATUSES:
            row["approvals"] += 1
        decided, created = as_utc(step.decided_at), as_utc(step.created_at)
        if decided and created:
            row["response_hours"] += _hours(decided - created)
            row["timed"] += 1

    for (email,) in comments:
        entry(email)["comments"] += 1

    return [
        {
            "email": email,
            "avg_response_hours": _round_hours(row["response_hours"], row["timed"]),
            "approval_rate": round(row["approvals"] * 100 / row["decisions"]) if row["decisions"] else 0,
            "total_comments": row["comments"],
            "total_decisions": row["decisions"],
        }
        for email, row in sorted(stats.items())
    ]
