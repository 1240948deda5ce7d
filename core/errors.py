# core/errors.py
from typing import List, Optional


class ItemStoreError(Exception):
    """The reminders item store could not serve a request."""


class AccessDeniedError(ItemStoreError):
    """The item store refused access (permission revoked, bad credentials)."""


class ReminderNotFoundError(ItemStoreError):
    pass


class ReadOnlyStoreError(ItemStoreError):
    pass


class NoReminderListsError(ItemStoreError):
    pass


class ReconcileError(Exception):
    """
    A reconciliation pass failed while reading or writing snapshots.

    partial_events holds the change events whose snapshot rows were already
    committed before the failure; they are still valid for dispatch.
    """

    def __init__(self, message: str, partial_events: Optional[List] = None):
        super().__init__(message)
        self.partial_events = list(partial_events or [])


class InvalidWebhookError(ValueError):
    """Rejected webhook subscription input."""
