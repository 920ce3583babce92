from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..rbac import UserPrincipal, ensure_team_permission
from ..services import webhooks as webhook_service

router = APIRouter(prefix="/api", tags=["webhooks"])


def _managed_webhook(db: Session, user: models.User, webhook_id: UUID) -> models.Webhook:
    webhook = webhook_service.get_webhook(db, webhook_id)
    ensure_team_permission(db, UserPrincipal(user), webhook.team_id, "webhook.manage")
    return webhook


@router.get("/teams/{team_id}/webhooks", response_model=List[schemas.WebhookOut])
async def list_webhooks(
    team_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_team_permission(db, UserPrincipal(user), team_id, "webhook.manage")
    return webhook_service.list_webhooks(db, team_id)


@router.post("/teams/{team_id}/webhooks", response_model=schemas.WebhookCreatedOut, status_code=201)
async def create_webhook(
    team_id: UUID,
    payload: schemas.WebhookCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_team_permission(db, UserPrincipal(user), team_id, "webhook.manage")
    return webhook_service.create_webhook(db, team_id, user, payload.url, payload.events)


@router.patch("/webhooks/{webhook_id}", response_model=schemas.WebhookOut)
async def update_webhook(
    webhook_id: UUID,
    payload: schemas.WebhookUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    webhook = _managed_webhook(db, user, webhook_id)
    return webhook_service.update_webhook(
        db, webhook, url=payload.url, events=payload.events, active=payload.active
    )


@router.delete("/webhooks/{webhook_id}")
async def delete_webhook(
    webhook_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    webhook = _managed_webhook(db, user, webhook_id)
    webhook_service.delete_webhook(db, webhook, user)
    return {"ok": True}


@router.post("/webhooks/{webhook_id}/test", response_model=schemas.WebhookDeliveryOut)
async def test_webhook(
    webhook_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    webhook = _managed_webhook(db, user, webhook_id)
    return webhook_service.send_test(db, webhook)


@router.get("/webhooks/{webhook_id}/deliveries", response_model=List[schemas.WebhookDeliveryOut])
async def list_deliveries(
    webhook_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _managed_webhook(db, user, webhook_id)
    return webhook_service.list_deliveries(db, webhook_id)
