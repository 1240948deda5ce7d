"""
Reminder and list routes.

Thin wrappers over the item store. Mutations go straight to the store; the
resulting webhooks come from the watcher's next pass, which the store's
change listener triggers.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from api.dependencies import get_store
from api.schemas import (
    CreateReminderIn,
    ReminderListOut,
    ReminderOut,
    UpdateReminderIn,
)
from core.models import Priority

router = APIRouter(tags=["Reminders"])


@router.get("/reminders", response_model=List[ReminderOut])
def list_reminders(
    list_name: Optional[str] = Query(default=None, alias="listName"),
    completed: bool = Query(default=False),
    priority: Optional[int] = Query(default=None),
    store=Depends(get_store),
):
    """Reminders filtered by list, completion (default: open only) and priority."""
    reminders = store.list_reminders()
    if list_name is not None:
        reminders = [r for r in reminders if r.list_name == list_name]
    reminders = [r for r in reminders if r.is_completed == completed]
    if priority is not None:
        reminders = [r for r in reminders if int(r.priority) == priority]
    return [ReminderOut.from_model(r) for r in reminders]


@router.post("/reminders", response_model=ReminderOut)
def create_reminder(body: CreateReminderIn, store=Depends(get_store)):
    reminder = store.create_reminder(
        title=body.title,
        list_name=body.list_name,
        notes=body.notes,
        due_date=body.due_date,
        priority=body.priority if body.priority is not None else Priority.NONE,
        recurrence=body.recurrence.to_model() if body.recurrence else None,
    )
    return ReminderOut.from_model(reminder)


@router.get("/reminders/{reminder_id}", response_model=ReminderOut)
def get_reminder(reminder_id: str, store=Depends(get_store)):
    return ReminderOut.from_model(store.get_reminder(reminder_id))


@router.patch("/reminders/{reminder_id}", response_model=ReminderOut)
def update_reminder(reminder_id: str, body: UpdateReminderIn, store=Depends(get_store)):
    changes = {}
    for name in body.model_fields_set:
        value = getattr(body, name)
        if name == "recurrence" and value is not None:
            value = value.to_model()
        changes[name] = value
    return ReminderOut.from_model(store.update_reminder(reminder_id, **changes))


@router.delete("/reminders/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(reminder_id: str, store=Depends(get_store)):
    store.delete_reminder(reminder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reminders/{reminder_id}/complete", response_model=ReminderOut)
def complete_reminder(reminder_id: str, store=Depends(get_store)):
    return ReminderOut.from_model(store.set_completed(reminder_id, True))


@router.post("/reminders/{reminder_id}/uncomplete", response_model=ReminderOut)
def uncomplete_reminder(reminder_id: str, store=Depends(get_store)):
    return ReminderOut.from_model(store.set_completed(reminder_id, False))


@router.get("/lists", response_model=List[ReminderListOut], tags=["Lists"])
def list_lists(store=Depends(get_store)):
    return [ReminderListOut.from_model(lst) for lst in store.list_lists()]
