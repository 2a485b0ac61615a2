import json
import asyncio
import threading
from typing import Optional

from fastapi import WebSocket
from pydantic import BaseModel

from donotcare.core.models import ReminderRequest
from donotcare.utils.logging_handler import setup_logger

logger = setup_logger(__name__)


# --- REQUEST BODIES ---
class ToggleRequest(BaseModel):
    toggle: str
    value: bool


class ActionRequest(BaseModel):
    action_id: str
    identifier: Optional[str] = None


def request_to_dict(request: ReminderRequest, fire_at: Optional[float] = None) -> dict:
    return {
        "identifier": request.identifier,
        "sequence": request.sequence,
        "mode": request.mode.value,
        "offset_seconds": request.offset_seconds,
        "title": request.title,
        "body": request.body,
        "category": request.category,
        "repeats": request.repeats,
        "fire_at": fire_at,
    }


# --- CONNECTION MANAGER ---
class ConnectionManager:
    # events arrive from the ticker and scheduler threads, so sends are
    # always handed to the loop
    def __init__(self, loop: asyncio.AbstractEventLoop):
        self.active_connections: set[WebSocket] = set()
        self._lock = threading.Lock()
        self.loop = loop

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        with self._lock:
            self.active_connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        with self._lock:
            self.active_connections.discard(websocket)

    @property
    def has_connections(self) -> bool:
        with self._lock:
            return bool(self.active_connections)

    def broadcast(self, msg_type: str, data):
        if not self.has_connections or self.loop.is_closed():
            return
        msg = json.dumps({"type": msg_type, "data": data})
        asyncio.run_coroutine_threadsafe(self._send_to_all(msg), self.loop)

    async def _send_to_all(self, message: str):
        with self._lock:
            current_sockets = list(self.active_connections)
        for ws in current_sockets:
            try:
                await ws.send_text(message)
            except Exception:
                logger.debug("Dropping closed websocket")
                self.disconnect(ws)


class WebPresenter:
    """Pushes timer ticks, mode changes and delivered reminders to WebSocket clients."""

    def __init__(self, manager: ConnectionManager, controller, notification_center):
        self.manager = manager
        self.controller = controller
        self.notification_center = notification_center

    def attach(self):
        self.controller.timer.on_tick.add_listener(self.show_tick)
        self.controller.on_mode_changed.add_listener(self.show_mode)
        self.controller.on_permission_prompt.add_listener(self.show_permission_prompt)
        self.controller.on_expired.add_listener(self.show_expired)
        self.notification_center.on_delivered.add_listener(self.show_notification)
        self.notification_center.on_badge_changed.add_listener(self.show_badge)

    def detach(self):
        self.controller.timer.on_tick.remove_listener(self.show_tick)
        self.controller.on_mode_changed.remove_listener(self.show_mode)
        self.controller.on_permission_prompt.remove_listener(self.show_permission_prompt)
        self.controller.on_expired.remove_listener(self.show_expired)
        self.notification_center.on_delivered.remove_listener(self.show_notification)
        self.notification_center.on_badge_changed.remove_listener(self.show_badge)

    def show_tick(self, mode, value, formatted, is_countdown):
        self.manager.broadcast("tick", {
            "mode": mode.value,
            "value": value,
            "formatted": formatted,
            "is_countdown": is_countdown,
        })

    def show_mode(self, mode):
        self.manager.broadcast("mode", self.controller.snapshot())

    def show_permission_prompt(self, message):
        self.manager.broadcast("permission", {"message": message})

    def show_expired(self, mode):
        self.manager.broadcast("expired", {"mode": mode.value})

    def show_notification(self, request: ReminderRequest):
        self.manager.broadcast("notification", request_to_dict(request))

    def show_badge(self, count):
        self.manager.broadcast("badge", {"count": count})
