"""Executive summaries of an asset's review comments via an external provider."""

from __future__ import annotations

import logging
import os
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from .. import models
from ..errors import AIUnavailable

logger = logging.getLogger(__name__)

AI_SUMMARY_URL = os.getenv("AI_SUMMARY_URL")
AI_API_KEY = os.getenv("AI_API_KEY")
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "20"))

EMPTY_SUMMARY = "No comments to summarize."
PROMPT = (
    "Summarize these review comments into a concise executive brief. Group by theme, "
    "note any action items, and highlight unresolved issues.\n\nComments:\n"
)


def format_timecode(seconds: float | None) -> str:
    if not seconds:
        return ""
    whole = int(seconds)
    return f"[{whole // 60}:{whole % 60:02d}]"


def format_comments(comments: list[models.Comment]) -> str:
    lines = []
    for comment in comments:
        stamp = format_timecode(comment.timecode_seconds)
        lines.append(f"{comment.author_name} {stamp}: {comment.body} ({comment.status})")
    return "\n".join(lines)


def summarize(text: str) -> str:
    """Call the configured provider. Every failure surfaces as ``AIUnavailable``."""

    url = os.getenv("AI_SUMMARY_URL", AI_SUMMARY_URL or "")
    if not url:
        raise AIUnavailable("AI not configured")
    headers = {"Content-Type": "application/json"}
    api_key = os.getenv("AI_API_KEY", AI_API_KEY or "")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    try:
        resp = requests.post(url, json={"prompt": PROMPT + text}, headers=headers, timeout=AI_TIMEOUT_SECONDS)
        resp.raise_for_status()
        payload = resp.json()
    except (requests.RequestException, ValueError) as exc:
        logger.warning("AI summary request failed: %s", exc)
        raise AIUnavailable("AI request failed") from exc
    summary = payload.get("summary") if isinstance(payload, dict) else None
    if not summary:
        raise AIUnavailable("AI response contained no summary")
    return summary


def summarize_asset(db: Session, asset_id: UUID) -> str:
    comments = (
        db.query(models.Comment)
        .filter(models.Comment.asset_id == asset_id)
        .order_by(models.Comment.created_at.asc())
        .all()
    )
    if not comments:
        return EMPTY_SUMMARY
    return summarize(format_comments(comments))
