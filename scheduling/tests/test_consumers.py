from datetime import timedelta
from types import SimpleNamespace

import pytest
from asgiref.sync import async_to_sync
from channels.testing import WebsocketCommunicator

from scheduling.realtime import consumers
from scheduling.realtime.consumers import ScheduleConsumer
from .fakes import T0, FakeStore, rec

pytestmark = pytest.mark.django_db

RECEPTIONIST = SimpleNamespace(is_authenticated=True, is_superuser=False, role="receptionist")
PATIENT = SimpleNamespace(is_authenticated=True, is_superuser=False, role="patient")


@pytest.fixture
def store(monkeypatch):
    store = FakeStore([rec(1, "pending"), rec(2, "confirmed", T0 + timedelta(days=1), notes="knee")])
    monkeypatch.setattr(consumers, "get_store", lambda: store)
    return store


def communicator_for(user=None):
    communicator = WebsocketCommunicator(ScheduleConsumer.as_asgi(), "/ws/schedule/")
    if user is not None:
        communicator.scope["user"] = user
    return communicator


def session(user, steps):
    """Connect, hand the communicator and the initial view to ``steps``, disconnect."""
    async def run():
        communicator = communicator_for(user)
        connected, _ = await communicator.connect()
        assert connected
        view = await communicator.receive_json_from()
        try:
            await steps(communicator, view)
        finally:
            await communicator.disconnect()
    async_to_sync(run)()


@pytest.mark.parametrize("user", [None, PATIENT])
def test_non_staff_connections_are_rejected(store, user):
    async def run():
        communicator = communicator_for(user)
        return await communicator.connect()

    connected, code = async_to_sync(run)()
    assert not connected
    assert code == 4003


def test_initial_view(store):
    async def steps(ws, view):
        assert view["type"] == "view"
        assert view["stats"]["total"] == 2
        assert view["stats"]["pending"] == 1
        assert [e["id"] for e in view["events"]] == [1, 2]
        assert view["filters"] == {"searchTerm": "", "filterStatus": "all"}
        assert view["viewMode"] == "week"
        assert view["notifications"] == []

    session(RECEPTIONIST, steps)


def test_search_filter_and_view_mode(store):
    async def steps(ws, view):
        await ws.send_json_to({"type": "search", "term": "KNEE"})
        view = await ws.receive_json_from()
        assert [a["id"] for a in view["appointments"]] == [2]

        await ws.send_json_to({"type": "search", "term": ""})
        await ws.receive_json_from()
        await ws.send_json_to({"type": "filter", "status": "pending"})
        view = await ws.receive_json_from()
        assert [a["id"] for a in view["appointments"]] == [1]
        assert view["stats"]["total"] == 2

        await ws.send_json_to({"type": "view_mode", "mode": "month"})
        view = await ws.receive_json_from()
        assert view["viewMode"] == "month"

    session(RECEPTIONIST, steps)


def test_action_and_notifications(store):
    async def steps(ws, view):
        await ws.send_json_to({"type": "action", "id": 1, "action": "cancel"})
        view = await ws.receive_json_from()
        assert view["stats"]["cancelled"] == 1
        assert store.records["1"].status == "cancelled"
        note = view["notifications"][0]
        assert (note["type"], note["message"], note["read"]) == ("success", "Appointment cancelled", False)

        await ws.send_json_to({"type": "notification_read", "id": note["id"]})
        view = await ws.receive_json_from()
        assert view["notifications"][0]["read"] is True

        await ws.send_json_to({"type": "notifications_clear"})
        view = await ws.receive_json_from()
        assert view["notifications"] == []

    session(RECEPTIONIST, steps)


def test_drop_shows_pending_move_then_result(store):
    new_start = T0 + timedelta(hours=4)

    async def steps(ws, view):
        await ws.send_json_to({"type": "drop", "id": 1, "start": new_start.isoformat()})
        pending = await ws.receive_json_from()
        assert pending["pending"] == [1]
        assert pending["events"][0]["start"] == new_start.isoformat()
        done = await ws.receive_json_from()
        assert done["pending"] == []
        assert done["events"][0]["end"] == (new_start + timedelta(hours=1)).isoformat()
        assert done["notifications"][0]["message"] == "Appointment rescheduled successfully"

    session(RECEPTIONIST, steps)
    assert store.records["1"].date == new_start


def test_failed_drop_reverts(store):
    store.failing.add("update")

    async def steps(ws, view):
        await ws.send_json_to({"type": "drop", "id": 1, "start": (T0 + timedelta(hours=4)).isoformat()})
        await ws.receive_json_from()
        done = await ws.receive_json_from()
        assert done["events"][0]["start"] == T0.isoformat()
        assert done["notifications"][0]["type"] == "error"

    session(RECEPTIONIST, steps)


def test_select_slot_save_and_delete(store):
    async def steps(ws, view):
        await ws.send_json_to({
            "type": "select_slot",
            "start": "2030-05-20T09:00:00Z",
            "end": "2030-05-20T09:30:00Z",
            "doctorName": "Dr. Lee",
        })
        draft = await ws.receive_json_from()
        assert draft["type"] == "draft"
        assert draft["draft"]["id"] is None
        assert draft["draft"]["status"] == "pending"
        assert draft["draft"]["doctorName"] == "Dr. Lee"
        await ws.receive_json_from()

        form = dict(draft["draft"], patientName="Walk In")
        await ws.send_json_to({"type": "save", "appointment": form})
        view = await ws.receive_json_from()
        assert view["stats"]["total"] == 3
        assert view["notifications"][0]["message"] == "Appointment created successfully"

        await ws.send_json_to({"type": "delete", "id": 2})
        view = await ws.receive_json_from()
        assert view["stats"]["total"] == 2
        assert view["notifications"][0]["message"] == "Appointment deleted successfully"

    session(RECEPTIONIST, steps)
    assert "2" not in store.records


@pytest.mark.parametrize("frame,code", [
    ("{not json", 4000),
    ("[1, 2]", 4001),
    ('{"type": "explode"}', 4002),
    ('{"type": "action", "action": "confirm"}', 4004),
    ('{"type": "filter", "status": "archived"}', 4004),
    ('{"type": "drop", "id": 1, "start": "yesterday"}', 4004),
])
def test_bad_messages_get_error_frames(store, frame, code):
    async def steps(ws, view):
        await ws.send_to(text_data=frame)
        error = await ws.receive_json_from()
        assert error["type"] == "error"
        assert error["code"] == code
        await ws.send_json_to({"type": "refresh"})
        view = await ws.receive_json_from()
        assert view["type"] == "view"

    session(RECEPTIONIST, steps)
