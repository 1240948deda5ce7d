"""Accessors for the collaborators that create_app() puts on app.state."""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from core.watcher import ReminderWatcher
from core.webhooks import WebhookDispatcher


def get_store(request: Request):
    return request.app.state.store


def get_db_path(request: Request) -> Optional[str]:
    return request.app.state.db_path


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


def get_watcher(request: Request) -> ReminderWatcher:
    watcher = request.app.state.watcher
    if watcher is None:
        raise HTTPException(status_code=503, detail="Reminder watcher is not running")
    return watcher
