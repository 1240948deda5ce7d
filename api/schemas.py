"""
Request/response models for the HTTP API.

Wire names are camelCase (reminderID, listName, ...) to stay compatible with
existing clients; Python attribute names stay snake_case.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import Recurrence, Reminder, ReminderList, Webhook


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# --- reminders ---


class RecurrenceIn(_Schema):
    frequency: Literal["daily", "weekly", "monthly", "yearly"]
    interval: Optional[int] = Field(default=None, ge=1)
    end_date: Optional[datetime] = Field(default=None, alias="endDate")

    def to_model(self) -> Recurrence:
        return Recurrence(
            frequency=self.frequency,
            interval=self.interval or 1,
            end_date=self.end_date,
        )


class ReminderOut(_Schema):
    id: str
    title: str
    list_name: str = Field(alias="listName")
    is_completed: bool = Field(alias="isCompleted")
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    notes: Optional[str] = None
    priority: int
    recurrence_rule: Optional[str] = Field(default=None, alias="recurrenceRule")

    @classmethod
    def from_model(cls, reminder: Reminder) -> "ReminderOut":
        return cls(
            id=reminder.reminder_id,
            title=reminder.title,
            list_name=reminder.list_name,
            is_completed=reminder.is_completed,
            due_date=reminder.due_date,
            notes=reminder.notes,
            priority=int(reminder.priority),
            recurrence_rule=reminder.recurrence_rule,
        )


class CreateReminderIn(_Schema):
    title: str = Field(min_length=1)
    list_name: Optional[str] = Field(default=None, alias="listName")
    notes: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    priority: Optional[int] = Field(default=None, ge=0, le=9)
    recurrence: Optional[RecurrenceIn] = None


class UpdateReminderIn(_Schema):
    """Only fields present in the body are applied; explicit null clears."""

    title: Optional[str] = Field(default=None, min_length=1)
    list_name: Optional[str] = Field(default=None, alias="listName")
    notes: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    priority: Optional[int] = Field(default=None, ge=0, le=9)
    recurrence: Optional[RecurrenceIn] = None


class ReminderListOut(_Schema):
    id: str
    title: str
    color: Optional[str] = None
    is_default: bool = Field(alias="isDefault")

    @classmethod
    def from_model(cls, reminder_list: ReminderList) -> "ReminderListOut":
        return cls(
            id=reminder_list.list_id,
            title=reminder_list.title,
            color=reminder_list.color,
            is_default=reminder_list.is_default,
        )


# --- webhooks ---


class CreateWebhookIn(_Schema):
    url: str
    secret: Optional[str] = None
    reminder_id: Optional[str] = Field(default=None, alias="reminderID")
    list_name: Optional[str] = Field(default=None, alias="listName")
    events: Optional[List[str]] = None


class WebhookOut(_Schema):
    id: str
    url: str
    reminder_id: Optional[str] = Field(default=None, alias="reminderID")
    list_name: Optional[str] = Field(default=None, alias="listName")
    events: List[str]
    active: bool
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @classmethod
    def from_model(cls, webhook: Webhook) -> "WebhookOut":
        return cls(
            id=webhook.webhook_id,
            url=webhook.url,
            reminder_id=webhook.reminder_id,
            list_name=webhook.list_name,
            events=list(webhook.events),
            active=webhook.active,
            created_at=webhook.created_at,
        )


class WebhookTestOut(BaseModel):
    success: bool


class SyncOut(BaseModel):
    ran: bool
    changes: int
