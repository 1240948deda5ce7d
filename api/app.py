"""
FastAPI application factory.

create_app() receives its collaborators from the composition root
(server.py) and keeps them on app.state; routers read them back through
api.dependencies. When a watcher is given, the app lifespan starts it on
startup and stops it on shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from api import reminders, webhooks
from core import storage
from core.errors import (
    AccessDeniedError,
    InvalidWebhookError,
    ItemStoreError,
    NoReminderListsError,
    ReadOnlyStoreError,
    ReconcileError,
    ReminderNotFoundError,
)
from core.logger import get_logger
from core.watcher import ReminderWatcher
from core.webhooks import WebhookDispatcher

logger = get_logger(__name__)

_STATUS_BY_ERROR = [
    (AccessDeniedError, 403),
    (ReminderNotFoundError, 404),
    (ReadOnlyStoreError, 405),
    (NoReminderListsError, 400),
    (ItemStoreError, 502),
]


def _item_store_error(request: Request, exc: ItemStoreError) -> JSONResponse:
    status_code = next(
        (code for error_cls, code in _STATUS_BY_ERROR if isinstance(exc, error_cls)),
        502,
    )
    if status_code >= 500:
        logger.error("Item store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _invalid_webhook(request: Request, exc: InvalidWebhookError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _reconcile_error(request: Request, exc: ReconcileError) -> JSONResponse:
    logger.error("Reconciliation failed: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(
    store,
    dispatcher: Optional[WebhookDispatcher] = None,
    watcher: Optional[ReminderWatcher] = None,
    db_path: Optional[str] = None,
) -> FastAPI:
    storage.ensure_db(db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if watcher is not None:
            watcher.start()
        try:
            yield
        finally:
            if watcher is not None:
                watcher.stop()

    app = FastAPI(
        title="Reminders Server API",
        description="Reminders with webhook notifications on change",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.db_path = db_path
    app.state.dispatcher = dispatcher or WebhookDispatcher(db_path=db_path)
    app.state.watcher = watcher

    app.add_exception_handler(ItemStoreError, _item_store_error)
    app.add_exception_handler(InvalidWebhookError, _invalid_webhook)
    app.add_exception_handler(ReconcileError, _reconcile_error)

    @app.get("/", response_class=PlainTextResponse, tags=["Health"])
    def health() -> str:
        return "It works!"

    app.include_router(reminders.router)
    app.include_router(webhooks.router)
    return app
