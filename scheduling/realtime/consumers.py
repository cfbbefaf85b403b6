import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer
from django.contrib.auth.models import AnonymousUser
from django.core.serializers.json import DjangoJSONEncoder

from scheduling.permissions import is_staff_user
from scheduling.services.dashboard import SchedulingDashboard
from scheduling.services.records import parse_instant
from scheduling.services.store import get_store

logger = logging.getLogger(__name__)


async def _ws_error(ws, code: int, message: str, *, close: bool = False):
    """
    Uniform error frame.
    App codes: 4xxx for client errors, 5xxx for server errors.
    """
    payload = {"type": "error", "code": code, "message": message}
    try:
        await ws.send(json.dumps(payload))
    finally:
        if close:
            await ws.close(code=code)


def _required(data: dict, key: str):
    value = data.get(key)
    if value in (None, ""):
        raise ValueError(f"missing {key}")
    return value


def _instant(data: dict, key: str):
    return parse_instant(_required(data, key))


class ScheduleConsumer(AsyncWebsocketConsumer):
    """One live scheduling dashboard per connection.

    The connection owns the dashboard state.  Every client message is
    answered with the recomputed view (stats, filtered appointments,
    calendar events, notifications); ``select_slot`` additionally
    answers with a ``draft`` frame for the edit form.
    """

    async def connect(self):
        user = self.scope.get("user") or AnonymousUser()
        if not is_staff_user(user):
            await self.close(code=4003)
            return
        self.dashboard = SchedulingDashboard(get_store())
        await self.accept()
        await self.dashboard.refresh()
        await self.send_view()

    async def send_json(self, payload: dict):
        await self.send(json.dumps(payload, cls=DjangoJSONEncoder))

    async def send_view(self):
        await self.send_json({"type": "view", **self.dashboard.view()})

    async def receive(self, text_data=None, bytes_data=None):
        if not text_data:
            return

        try:
            data = json.loads(text_data)
        except ValueError:
            await _ws_error(self, 4000, "invalid_json")
            return

        if not isinstance(data, dict):
            await _ws_error(self, 4001, "invalid_payload")
            return

        handler = getattr(self, "on_" + str(data.get("type")), None)
        if handler is None:
            await _ws_error(self, 4002, "unsupported_type")
            return

        try:
            await handler(data)
        except ValueError as exc:
            await _ws_error(self, 4004, str(exc))
            return
        except Exception:
            logger.exception("dashboard message %s failed", data.get("type"))
            await _ws_error(self, 5000, "server_error")
            return
        await self.send_view()

    # -- message handlers ---------------------------------------------------------

    async def on_refresh(self, data):
        await self.dashboard.refresh()

    async def on_search(self, data):
        self.dashboard.set_search(data.get("term"))

    async def on_filter(self, data):
        self.dashboard.set_filter(data.get("status"))

    async def on_view_mode(self, data):
        self.dashboard.set_view_mode(data.get("mode"))

    async def on_action(self, data):
        await self.dashboard.apply_action(_required(data, "id"), _required(data, "action"))

    async def on_drop(self, data):
        await self.dashboard.move(
            _required(data, "id"),
            _instant(data, "start"),
            parse_instant(data.get("end")),
            on_pending=self.send_view,
        )

    async def on_select_slot(self, data):
        fields = {k: v for k, v in data.items() if k not in ("type", "start", "end")}
        draft = self.dashboard.select_slot(_instant(data, "start"), _instant(data, "end"), **fields)
        await self.send_json({"type": "draft", "draft": draft})

    async def on_save(self, data):
        appointment = data.get("appointment")
        if not isinstance(appointment, dict):
            raise ValueError("missing appointment")
        await self.dashboard.save(appointment)

    async def on_delete(self, data):
        await self.dashboard.delete(_required(data, "id"))

    async def on_notification_read(self, data):
        self.dashboard.log.mark_read(int(_required(data, "id")))

    async def on_notifications_clear(self, data):
        self.dashboard.log.clear()
