import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    BigInteger,
    Float,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    is_active = Column(Boolean, default=True)
    # purpose: atomic per-user unread counter maintained alongside notification rows
    unread_notification_count = Column(Integer, default=0, nullable=False)
    last_digest = Column(DateTime, default=_utcnow)
    created_at = Column(DateTime, default=_utcnow)

    teams = relationship("TeamMember", back_populates="user", foreign_keys="TeamMember.user_id")
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )


class Team(Base):
    __tablename__ = "teams"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)

    members = relationship("TeamMember", back_populates="team", cascade="all, delete-orphan")
    webhooks = relationship("Webhook", back_populates="team", cascade="all, delete-orphan")


class TeamMember(Base):
    __tablename__ = "team_members"
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True)
    role = Column(String, default="member", nullable=False)
    invited_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    joined_at = Column(DateTime, default=_utcnow)

    user = relationship("User", back_populates="teams", foreign_keys=[user_id])
    team = relationship("Team", back_populates="members")


class Project(Base):
    __tablename__ = "projects"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    description = Column(String)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow)

    assets = relationship("Asset", back_populates="project", cascade="all, delete-orphan")


class Asset(Base):
    __tablename__ = "assets"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    media_type = Column(String, nullable=False, default="video")  # video, audio, image, document, other
    file_url = Column(String, nullable=True)
    # purpose: monotonic counter, bumped under row lock before each version insert
    version_count = Column(Integer, default=0, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow)

    project = relationship("Project", back_populates="assets")
    versions = relationship(
        "Version",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="Version.version_number.desc()",
    )
    comments = relationship("Comment", back_populates="asset", cascade="all, delete-orphan")
    approval_steps = relationship(
        "ApprovalStep",
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.sequence",
    )
    invites = relationship("ReviewInvite", back_populates="asset", cascade="all, delete-orphan")
    watchers = relationship("AssetWatcher", cascade="all, delete-orphan")


class AssetWatcher(Base):
    __tablename__ = "asset_watchers"
    asset_id = Column(UUID(as_uuid=True), ForeignKey("assets.id"), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), primary_key=True)
    created_at = Column(DateTime, default=_utcnow)


class Version(Base):
    __tablename__ = "versions"
    __table_args__ = (
        sa.UniqueConstraint("asset_id", "version_number", name="uq_versions_asset_number"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    file_url = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=True)
    notes = Column(Text, nullable=True)
    uploaded_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=_utcnow)

    asset = relationship("Asset", back_populates="versions")
    annotations = relationship(
        "Annotation",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="Annotation.created_at",
    )


class Annotation(Base):
    __tablename__ = "annotations"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    version_id = Column(UUID(as_uuid=True), ForeignKey("versions.id"), nullable=False, index=True)
    comment_id = Column(UUID(as_uuid=True), ForeignKey("comments.id"), nullable=True)
    shape = Column(String, nullable=False)  # pin, rectangle, arrow, freehand
    points = Column(JSON, default=list)  # ordered [[x, y], ...]
    radius = Column(Float, nullable=True)
    stroke_width = Column(Float, nullable=True)
    color = Column(String, nullable=True)
    opacity = Column(Float, nullable=True)
    timecode_seconds = Column(Float, nullable=True)
    page_number = Column(Integer, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    version = relationship("Version", back_populates="annotations")
    comment = relationship("Comment", back_populates="annotations")


class Comment(Base):
    __tablename__ = "comments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True)
    parent_id = Column(UUID(as_uuid=True), ForeignKey("comments.id"), nullable=True)
    body = Column(Text, nullable=False)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    author_name = Column(String, nullable=False)
    author_email = Column(String, nullable=True)
    invite_id = Column(UUID(as_uuid=True), ForeignKey("review_invites.id"), nullable=True)
    timecode_seconds = Column(Float, nullable=True)
    status = Column(String, default="open", nullable=False)  # open, resolved
    resolved_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    asset = relationship("Asset", back_populates="comments")
    replies = relationship("Comment", cascade="all, delete-orphan")
    reactions = relationship(
        "CommentReaction",
        back_populates="comment",
        cascade="all, delete-orphan",
        order_by="CommentReaction.created_at",
    )
    attachments = relationship(
        "CommentAttachment",
        back_populates="comment",
        cascade="all, delete-orphan",
        order_by="CommentAttachment.created_at",
    )
    annotations = relationship("Annotation", back_populates="comment", cascade="all, delete-orphan")


class CommentReaction(Base):
    __tablename__ = "comment_reactions"
    __table_args__ = (
        sa.UniqueConstraint("comment_id", "user_id", "emoji", name="uq_reaction_comment_user_emoji"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    comment_id = Column(UUID(as_uuid=True), ForeignKey("comments.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    emoji = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    comment = relationship("Comment", back_populates="reactions")


class CommentAttachment(Base):
    __tablename__ = "comment_attachments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    comment_id = Column(UUID(as_uuid=True), ForeignKey("comments.id"), nullable=False, index=True)
    file_url = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=True)
    file_size = Column(BigInteger, nullable=False)
    uploaded_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    comment = relationship("Comment", back_populates="attachments")


class ApprovalStep(Base):
    __tablename__ = "approval_steps"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False, default=1)
    role_label = Column(String, nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    assignee_email = Column(String, nullable=True)
    status = Column(String, default="pending", nullable=False)  # pending, approved, rejected, changes_requested
    decision_note = Column(Text, nullable=True)
    decided_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    decided_by_invite = Column(UUID(as_uuid=True), ForeignKey("review_invites.id"), nullable=True)
    decided_at = Column(DateTime, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    asset = relationship("Asset", back_populates="approval_steps")


class ReviewInvite(Base):
    __tablename__ = "review_invites"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(as_uuid=True), ForeignKey("assets.id"), nullable=False, index=True)
    token = Column(String, unique=True, nullable=False, index=True)
    permission = Column(String, default="comment", nullable=False)  # view, comment, approve
    reviewer_name = Column(String, nullable=True)
    reviewer_email = Column(String, nullable=True)
    watermark_enabled = Column(Boolean, default=False, nullable=False)
    watermark_text = Column(String, nullable=True)
    download_enabled = Column(Boolean, default=False, nullable=False)
    max_views = Column(Integer, nullable=True)
    view_count = Column(Integer, default=0, nullable=False)
    last_viewed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    asset = relationship("Asset", back_populates="invites")
    views = relationship(
        "ShareView",
        back_populates="invite",
        cascade="all, delete-orphan",
        order_by="ShareView.viewed_at.desc()",
    )


class ShareView(Base):
    __tablename__ = "share_views"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invite_id = Column(UUID(as_uuid=True), ForeignKey("review_invites.id"), nullable=False, index=True)
    viewer_ip_hash = Column(String, nullable=True)
    duration_seconds = Column(Float, default=0)
    actions = Column(JSON, default=dict)
    viewed_at = Column(DateTime, default=_utcnow)

    invite = relationship("ReviewInvite", back_populates="views")


class ActivityLog(Base):
    __tablename__ = "activity_log"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    actor_name = Column(String, nullable=False)
    action = Column(String, nullable=False)
    # plain ids, entries remain after the referenced rows are deleted
    team_id = Column(UUID(as_uuid=True), nullable=True)
    project_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    asset_id = Column(UUID(as_uuid=True), nullable=True)
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    event_type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    body = Column(String, default="")
    data = Column(JSON, default=dict)
    is_read = Column(Boolean, default=False, nullable=False)
    # false for rows kept only for the email digest; hidden from the inbox
    delivered_in_app = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow)

    user = relationship("User", back_populates="notifications")

    @property
    def action_url(self) -> str | None:
        data = self.data or {}
        return data.get("action_url")


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "event_type"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    event_type = Column(String, nullable=False)
    in_app_enabled = Column(Boolean, default=True, nullable=False)
    email_enabled = Column(Boolean, default=True, nullable=False)
    email_frequency = Column(String, default="immediate", nullable=False)  # immediate, digest


class Webhook(Base):
    __tablename__ = "webhooks"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    team_id = Column(UUID(as_uuid=True), ForeignKey("teams.id"), nullable=False, index=True)
    url = Column(String, nullable=False)
    events = Column(JSON, default=list)  # empty subscribes to every event
    secret = Column(String, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    team = relationship("Team", back_populates="webhooks")
    deliveries = relationship(
        "WebhookDelivery", back_populates="webhook", cascade="all, delete-orphan"
    )


class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    webhook_id = Column(UUID(as_uuid=True), ForeignKey("webhooks.id"), nullable=False, index=True)
    event = Column(String, nullable=False)
    payload = Column(JSON, default=dict)
    response_code = Column(Integer, default=0, nullable=False)  # 0 when the endpoint was unreachable
    delivered_at = Column(DateTime, default=_utcnow)

    webhook = relationship("Webhook", back_populates="deliveries")

    @property
    def success(self) -> bool:
        return 200 <= (self.response_code or 0) < 300
