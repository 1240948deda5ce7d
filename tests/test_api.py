"""Tests for the HTTP API."""

import uuid
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from api.app import create_app
from core.errors import AccessDeniedError
from core.reconciler import Reconciler
from core.watcher import ReminderWatcher
from stores.remote import RemoteReminderStore


@pytest.fixture
def dispatcher():
    d = MagicMock()
    d.send_test.return_value = True
    return d


@pytest.fixture
def watcher(local_store, db_path, dispatcher):
    # Never started: the tests drive passes through POST /sync.
    return ReminderWatcher(Reconciler(local_store, db_path=db_path), dispatcher)


@pytest.fixture
def client(local_store, db_path, dispatcher, watcher):
    app = create_app(local_store, dispatcher=dispatcher, watcher=None, db_path=db_path)
    app.state.watcher = watcher
    return TestClient(app)


class TestHealth:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.text == "It works!"


class TestReminderRoutes:
    """Tests for /reminders and /lists."""

    def _create(self, client, **body):
        body.setdefault("title", "Buy milk")
        r = client.post("/reminders", json=body)
        assert r.status_code == 200, r.text
        return r.json()

    def test_create_returns_dto(self, client):
        data = self._create(
            client,
            listName="Home",
            notes="2%",
            dueDate="2026-11-01T09:30:00Z",
            priority=5,
            recurrence={"frequency": "daily"},
        )
        assert data["id"]
        assert data["title"] == "Buy milk"
        assert data["listName"] == "Home"
        assert data["isCompleted"] is False
        assert data["dueDate"].startswith("2026-11-01T09:30:00")
        assert data["notes"] == "2%"
        assert data["priority"] == 5
        assert data["recurrenceRule"] == "Repeats daily"

    def test_create_validation(self, client):
        assert client.post("/reminders", json={}).status_code == 422
        assert client.post("/reminders", json={"title": "x", "priority": 12}).status_code == 422
        assert client.post(
            "/reminders", json={"title": "x", "recurrence": {"frequency": "hourly"}}
        ).status_code == 422

    def test_list_defaults_to_open_reminders(self, client):
        open_one = self._create(client, title="Open")
        done = self._create(client, title="Done")
        client.post(f"/reminders/{done['id']}/complete")

        assert [r["id"] for r in client.get("/reminders").json()] == [open_one["id"]]
        assert [r["id"] for r in client.get("/reminders?completed=true").json()] == [done["id"]]

    def test_list_filters(self, client):
        home = self._create(client, title="a", listName="Home", priority=1)
        self._create(client, title="b", listName="Work", priority=1)
        self._create(client, title="c", listName="Home", priority=9)

        r = client.get("/reminders", params={"listName": "Home", "priority": 1})
        assert [x["id"] for x in r.json()] == [home["id"]]

    def test_get_patch_delete(self, client):
        created = self._create(client, dueDate="2026-11-01T09:30:00Z", notes="n")
        rid = created["id"]

        assert client.get(f"/reminders/{rid}").json()["title"] == "Buy milk"

        patched = client.patch(f"/reminders/{rid}", json={"title": "Buy bread", "dueDate": None})
        assert patched.status_code == 200
        assert patched.json()["title"] == "Buy bread"
        assert patched.json()["dueDate"] is None
        assert patched.json()["notes"] == "n"

        assert client.delete(f"/reminders/{rid}").status_code == 204
        assert client.get(f"/reminders/{rid}").status_code == 404

    def test_complete_uncomplete(self, client):
        rid = self._create(client)["id"]
        assert client.post(f"/reminders/{rid}/complete").json()["isCompleted"] is True
        assert client.post(f"/reminders/{rid}/uncomplete").json()["isCompleted"] is False

    def test_missing_reminder(self, client):
        assert client.get("/reminders/nope").status_code == 404
        assert client.post("/reminders/nope/complete").status_code == 404
        assert client.delete("/reminders/nope").status_code == 404

    def test_lists(self, client):
        data = client.get("/lists").json()
        assert [x["title"] for x in data] == ["Reminders", "Home", "Work"]
        assert data[0]["isDefault"] is True
        assert set(data[0]) == {"id", "title", "color", "isDefault"}

    def test_access_denied_maps_to_403(self, db_path):
        store = MagicMock()
        store.list_reminders.side_effect = AccessDeniedError("Reminders access denied")
        client = TestClient(create_app(store, dispatcher=MagicMock(), db_path=db_path))

        r = client.get("/reminders")

        assert r.status_code == 403
        assert r.json()["detail"] == "Reminders access denied"

    def test_malformed_feed_maps_to_502(self, db_path):
        session = MagicMock(spec=requests.Session)
        session.headers = {}
        session.get.return_value.status_code = 200
        session.get.return_value.json.return_value = [{"id": "A", "dueDate": "soon"}]
        store = RemoteReminderStore(feed_url="https://feed.example.com", session=session)
        client = TestClient(create_app(store, dispatcher=MagicMock(), db_path=db_path))

        assert client.get("/reminders").status_code == 502


class TestWebhookRoutes:
    """Tests for /webhooks."""

    def _create(self, client, **body):
        body.setdefault("url", "https://example.com/hook")
        r = client.post("/webhooks", json=body)
        assert r.status_code == 200, r.text
        return r.json()

    def test_create_and_list(self, client):
        data = self._create(client, secret="s", reminderID="A", listName="Home", events=["completed"])

        assert uuid.UUID(data["id"])
        assert data["reminderID"] == "A"
        assert data["listName"] == "Home"
        assert data["events"] == ["completed"]
        assert data["active"] is True
        assert data["createdAt"]
        assert "secret" not in data

        assert [w["id"] for w in client.get("/webhooks").json()] == [data["id"]]

    def test_default_events(self, client):
        assert self._create(client)["events"] == ["created", "updated", "completed", "deleted"]

    @pytest.mark.parametrize(
        "url", ["not a url", "http://[::1", "http://exa mple.com/hook", "http://host:notaport/x"]
    )
    def test_malformed_url_is_client_error(self, client, url):
        r = client.post("/webhooks", json={"url": url})
        assert r.status_code == 400
        assert client.get("/webhooks").json() == []

    def test_url_stored_as_given(self, client):
        assert self._create(client, url="https://example.com")["url"] == "https://example.com"

    def test_unknown_event_is_client_error(self, client):
        r = client.post("/webhooks", json={"url": "https://example.com", "events": ["exploded"]})
        assert r.status_code == 400

    def test_get_toggle_delete(self, client):
        wid = self._create(client)["id"]

        assert client.get(f"/webhooks/{wid}").json()["id"] == wid
        assert client.patch(f"/webhooks/{wid}/toggle").json()["active"] is False
        assert client.patch(f"/webhooks/{wid}/toggle").json()["active"] is True
        assert client.delete(f"/webhooks/{wid}").status_code == 204
        assert client.get(f"/webhooks/{wid}").status_code == 404

    def test_bad_and_unknown_ids(self, client):
        assert client.get("/webhooks/not-a-uuid").status_code == 400
        assert client.get(f"/webhooks/{uuid.uuid4()}").status_code == 404
        assert client.post(f"/webhooks/{uuid.uuid4()}/test").status_code == 404

    def test_send_test(self, client, dispatcher):
        wid = self._create(client)["id"]

        r = client.post(f"/webhooks/{wid}/test")

        assert r.json() == {"success": True}
        [webhook] = dispatcher.send_test.call_args.args
        assert webhook.webhook_id == wid


class TestSyncRoute:
    """POST /sync runs a pass and dispatches its events."""

    def test_sync_after_mutation(self, client, dispatcher):
        client.post("/reminders", json={"title": "Buy milk"})

        r = client.post("/sync")

        assert r.json() == {"ran": True, "changes": 1}
        [events] = dispatcher.dispatch.call_args.args
        assert events[0].kind.value == "created"

        assert client.post("/sync").json() == {"ran": True, "changes": 0}

    def test_sync_without_watcher(self, local_store, db_path):
        client = TestClient(create_app(local_store, dispatcher=MagicMock(), db_path=db_path))
        assert client.post("/sync").status_code == 503
