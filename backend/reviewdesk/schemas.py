from datetime import datetime
from typing import Optional, Any, Dict, Literal, List
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from uuid import UUID


TeamRole = Literal["viewer", "member", "admin", "owner"]
GuestPermission = Literal["view", "comment", "approve"]
MediaType = Literal["video", "audio", "image", "document", "other"]
DecisionStatus = Literal["approved", "rejected", "changes_requested"]
Shape = Literal["pin", "rectangle", "arrow", "freehand"]


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    full_name: Optional[str] = None


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TeamCreate(BaseModel):
    name: str


class TeamOut(BaseModel):
    id: UUID
    name: str
    owner_id: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class TeamMemberAdd(BaseModel):
    user_id: Optional[UUID] = None
    email: Optional[EmailStr] = None
    role: TeamRole = "member"


class TeamMemberRoleUpdate(BaseModel):
    role: TeamRole


class TeamMemberOut(BaseModel):
    team_id: UUID
    user_id: UUID
    role: str
    invited_by: Optional[UUID] = None
    joined_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    team_id: Optional[UUID] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class ProjectOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    owner_id: UUID
    team_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class AssetCreate(BaseModel):
    title: str
    media_type: MediaType = "video"
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    notes: Optional[str] = None


class AssetUpdate(BaseModel):
    title: Optional[str] = None
    media_type: Optional[MediaType] = None


class AssetOut(BaseModel):
    id: UUID
    project_id: UUID
    title: str
    media_type: str
    file_url: Optional[str] = None
    version_count: int = 0
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    approval_state: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class VersionCreate(BaseModel):
    file_url: str
    file_size: Optional[int] = None
    notes: Optional[str] = None


class VersionOut(BaseModel):
    id: UUID
    asset_id: UUID
    version_number: int
    file_url: str
    file_size: Optional[int] = None
    notes: Optional[str] = None
    uploaded_by: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AnnotationCreate(BaseModel):
    shape: Shape
    points: List[List[float]]
    radius: Optional[float] = None
    stroke_width: Optional[float] = None
    color: Optional[str] = None
    opacity: Optional[float] = None
    timecode_seconds: Optional[float] = None
    page_number: Optional[int] = None
    comment_id: Optional[UUID] = None


class AnnotationMove(BaseModel):
    points: List[List[float]]


class AnnotationOut(BaseModel):
    id: UUID
    version_id: UUID
    comment_id: Optional[UUID] = None
    shape: str
    points: List[List[float]]
    radius: Optional[float] = None
    stroke_width: Optional[float] = None
    color: Optional[str] = None
    opacity: Optional[float] = None
    timecode_seconds: Optional[float] = None
    page_number: Optional[int] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class VersionWithAnnotations(VersionOut):
    annotations: List[AnnotationOut] = Field(default_factory=list)


class VersionCompareOut(BaseModel):
    version_a: VersionWithAnnotations
    version_b: VersionWithAnnotations


class CommentCreate(BaseModel):
    body: str
    timecode_seconds: Optional[float] = None
    parent_id: Optional[UUID] = None


class GuestCommentCreate(CommentCreate):
    author_name: Optional[str] = None
    author_email: Optional[EmailStr] = None


class ReactionOut(BaseModel):
    id: UUID
    comment_id: UUID
    user_id: UUID
    emoji: str
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ReactionIn(BaseModel):
    emoji: str


class AttachmentOut(BaseModel):
    id: UUID
    comment_id: UUID
    file_url: str
    file_name: str
    file_type: Optional[str] = None
    file_size: int
    uploaded_by: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CommentOut(BaseModel):
    id: UUID
    asset_id: UUID
    parent_id: Optional[UUID] = None
    body: str
    author_id: Optional[UUID] = None
    author_name: str
    author_email: Optional[str] = None
    timecode_seconds: Optional[float] = None
    status: str
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    reactions: List[ReactionOut] = Field(default_factory=list)
    attachments: List[AttachmentOut] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class ApprovalStepCreate(BaseModel):
    role_label: str
    sequence: Optional[int] = None
    assignee_id: Optional[UUID] = None
    assignee_email: Optional[EmailStr] = None


class ApprovalChainCreate(BaseModel):
    steps: List[ApprovalStepCreate]


class ApprovalStepUpdate(BaseModel):
    role_label: Optional[str] = None
    sequence: Optional[int] = None
    assignee_id: Optional[UUID] = None
    assignee_email: Optional[EmailStr] = None


class ApprovalDecision(BaseModel):
    status: DecisionStatus
    decision_note: Optional[str] = None


class ApprovalStepOut(BaseModel):
    id: UUID
    asset_id: UUID
    sequence: int
    role_label: str
    assignee_id: Optional[UUID] = None
    assignee_email: Optional[str] = None
    status: str
    decision_note: Optional[str] = None
    decided_by: Optional[UUID] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ApprovalChainOut(BaseModel):
    asset_id: UUID
    state: str
    steps: List[ApprovalStepOut]


class ApprovalNotifyOut(BaseModel):
    ok: bool
    sent_to: str


class ShareCreate(BaseModel):
    permission: GuestPermission = "comment"
    expires_in_seconds: Optional[int] = None
    reviewer_email: Optional[EmailStr] = None
    reviewer_name: Optional[str] = None
    watermark_enabled: bool = False
    watermark_text: Optional[str] = None
    download_enabled: bool = False
    max_views: Optional[int] = None


class ShareOut(BaseModel):
    id: UUID
    asset_id: UUID
    token: str
    permission: str
    reviewer_name: Optional[str] = None
    reviewer_email: Optional[str] = None
    watermark_enabled: bool
    watermark_text: Optional[str] = None
    download_enabled: bool
    max_views: Optional[int] = None
    view_count: int
    last_viewed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    review_url: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ShareViewIn(BaseModel):
    duration_seconds: float = 0
    actions: Dict[str, Any] = Field(default_factory=dict)


class ShareViewOut(BaseModel):
    id: UUID
    invite_id: UUID
    viewer_ip_hash: Optional[str] = None
    duration_seconds: float
    actions: Dict[str, Any] = Field(default_factory=dict)
    viewed_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ShareAnalyticsOut(BaseModel):
    invite_id: UUID
    view_count: int
    unique_viewers: int
    total_duration_seconds: float
    last_viewed_at: Optional[datetime] = None
    is_expired: bool
    views: List[ShareViewOut]


class WatermarkOut(BaseModel):
    url: Optional[str] = None
    watermarked: bool
    watermark_text: Optional[str] = None
    watermark_opacity: Optional[float] = None


class GuestAssetOut(BaseModel):
    id: UUID
    project_id: UUID
    title: str
    media_type: str
    file_url: Optional[str] = None
    version_count: int = 0
    model_config = ConfigDict(from_attributes=True)


class GuestReviewOut(BaseModel):
    asset: GuestAssetOut
    project_name: Optional[str] = None
    comments: List[CommentOut]
    permission: str
    expires_at: Optional[datetime] = None
    download_enabled: bool
    watermark: WatermarkOut


class NotificationOut(BaseModel):
    id: UUID
    event_type: str
    title: str
    body: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    action_url: Optional[str] = None
    is_read: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class UnreadCountOut(BaseModel):
    unread: int


class NotificationPreferenceIn(BaseModel):
    in_app_enabled: Optional[bool] = None
    email_enabled: Optional[bool] = None
    email_frequency: Optional[Literal["immediate", "digest"]] = None


class NotificationPreferenceOut(BaseModel):
    event_type: str
    in_app_enabled: bool
    email_enabled: bool
    email_frequency: str
    model_config = ConfigDict(from_attributes=True)


class ActivityOut(BaseModel):
    id: UUID
    actor_id: Optional[UUID] = None
    actor_name: str
    action: str
    team_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    asset_id: Optional[UUID] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SummaryOut(BaseModel):
    asset_id: UUID
    summary: str


class DayCount(BaseModel):
    date: str
    count: int


class ProjectAnalyticsOut(BaseModel):
    project_id: UUID
    total_assets: int
    active_reviews: int
    comments_this_week: int
    avg_approval_hours: float
    comments_per_day: List[DayCount]
    decisions: Dict[str, int] = Field(default_factory=dict)


class ReviewerStatOut(BaseModel):
    email: str
    avg_response_hours: float
    approval_rate: int
    total_comments: int
    total_decisions: int


class WebhookCreate(BaseModel):
    url: str
    events: List[str] = Field(default_factory=list)


class WebhookUpdate(BaseModel):
    url: Optional[str] = None
    events: Optional[List[str]] = None
    active: Optional[bool] = None


class WebhookOut(BaseModel):
    id: UUID
    team_id: UUID
    url: str
    events: List[str] = Field(default_factory=list)
    active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class WebhookCreatedOut(WebhookOut):
    # only returned once, at registration
    secret: str


class WebhookDeliveryOut(BaseModel):
    id: UUID
    webhook_id: UUID
    event: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    response_code: int
    success: bool
    delivered_at: datetime
    model_config = ConfigDict(from_attributes=True)
