# stores/__init__.py
import os

from . import local
from . import remote

ITEM_STORE = os.getenv("ITEM_STORE", "local").strip().lower()

STORES = {
    "local": local.LocalReminderStore,
    "remote": remote.RemoteReminderStore,
}


def build_store(kind: str | None = None):
    kind = (kind or ITEM_STORE).strip().lower()
    store_cls = STORES.get(kind)
    if store_cls is None:
        raise ValueError(
            f"Unknown ITEM_STORE {kind!r}; expected one of {', '.join(STORES)}"
        )
    return store_cls()
