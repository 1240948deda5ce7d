"""Webhook subscription routes and the on-demand sync trigger."""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status

from api.dependencies import get_db_path, get_dispatcher, get_watcher
from api.schemas import CreateWebhookIn, SyncOut, WebhookOut, WebhookTestOut
from core import storage
from core.models import Webhook

router = APIRouter(tags=["Webhooks"])


def _load_webhook(webhook_id: str, db_path: Optional[str]) -> Webhook:
    try:
        webhook_id = str(uuid.UUID(webhook_id))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook ID")
    webhook = storage.get_webhook(webhook_id, db_path)
    if webhook is None:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return webhook


@router.get("/webhooks", response_model=List[WebhookOut])
def list_webhooks(db_path=Depends(get_db_path)):
    return [WebhookOut.from_model(w) for w in storage.list_webhooks(db_path)]


@router.post("/webhooks", response_model=WebhookOut)
def create_webhook(body: CreateWebhookIn, db_path=Depends(get_db_path)):
    # InvalidWebhookError is mapped to 400 by the app's exception handler.
    webhook = storage.create_webhook(
        url=body.url,
        secret=body.secret,
        reminder_id=body.reminder_id,
        list_name=body.list_name,
        events=body.events,
        db_path=db_path,
    )
    return WebhookOut.from_model(webhook)


@router.get("/webhooks/{webhook_id}", response_model=WebhookOut)
def get_webhook(webhook_id: str, db_path=Depends(get_db_path)):
    return WebhookOut.from_model(_load_webhook(webhook_id, db_path))


@router.delete("/webhooks/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_webhook(webhook_id: str, db_path=Depends(get_db_path)):
    webhook = _load_webhook(webhook_id, db_path)
    storage.delete_webhook(webhook.webhook_id, db_path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/webhooks/{webhook_id}/test", response_model=WebhookTestOut)
def test_webhook(
    webhook_id: str,
    db_path=Depends(get_db_path),
    dispatcher=Depends(get_dispatcher),
):
    webhook = _load_webhook(webhook_id, db_path)
    return WebhookTestOut(success=dispatcher.send_test(webhook))


@router.patch("/webhooks/{webhook_id}/toggle", response_model=WebhookOut)
def toggle_webhook(webhook_id: str, db_path=Depends(get_db_path)):
    webhook = _load_webhook(webhook_id, db_path)
    toggled = storage.toggle_webhook(webhook.webhook_id, db_path)
    if toggled is None:
        raise HTTPException(status_code=404, detail="Webhook not found")
    return WebhookOut.from_model(toggled)


@router.post("/sync", response_model=SyncOut, tags=["Sync"])
def sync_now(watcher=Depends(get_watcher)):
    """Run a reconciliation pass now, or queue one behind the pass in flight."""
    ran = watcher.trigger.request()
    changes = len(watcher.trigger.last_result or []) if ran else 0
    return SyncOut(ran=ran, changes=changes)
