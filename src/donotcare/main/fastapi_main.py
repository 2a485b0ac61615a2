import json
import asyncio
import argparse
from dataclasses import dataclass
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect

# Architecture Imports
from donotcare.config import Settings
from donotcare.core.controller import ModeController
from donotcare.core.status import Mode, ToggleType
from donotcare.adapters.memory_adapters.sqlite_kv_adapter import SqliteKeyValueAdapter
from donotcare.adapters.notification_adapters.apscheduler_notification_center import LocalNotificationCenter
from donotcare.adapters.fastapi_adapters.helper_adapters import (
    ActionRequest,
    ConnectionManager,
    ToggleRequest,
    WebPresenter,
    request_to_dict,
)
from donotcare.tools.reminder_tools.reminder_scheduler import ReminderScheduler
from donotcare.tools.time_tools.mode_timer import ModeTimer
from donotcare.utils.logging_handler import setup_logger

logger = setup_logger(__name__)


@dataclass
class Services:
    store: SqliteKeyValueAdapter
    notification_center: LocalNotificationCenter
    scheduler: ReminderScheduler
    timer: ModeTimer
    controller: ModeController


def build_services(settings: Settings) -> Services:
    """Wire ports, adapters and the core together. Nothing is started here."""
    store = SqliteKeyValueAdapter(settings.db_path)
    center = LocalNotificationCenter(
        max_pending=settings.max_pending,
        auto_grant=settings.auto_grant_permission,
    )
    scheduler = ReminderScheduler(
        notifier=center,
        store=store,
        configs=settings.batch_configs(),
        permissions=center,
        max_pending=settings.max_pending,
    )
    timer = ModeTimer(store, countdowns=settings.countdowns, tick_interval=settings.tick_interval)
    controller = ModeController(
        scheduler=scheduler,
        timer=timer,
        store=store,
        permissions=center,
        actions=center.on_action,
        auto_care_on_expiry=settings.auto_care_on_expiry,
    )
    return Services(store, center, scheduler, timer, controller)


# --- APP FACTORY ---
def create_app(settings: Optional[Settings] = None):
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop = asyncio.get_running_loop()

        services = build_services(settings)
        manager = ConnectionManager(loop=loop)
        presenter = WebPresenter(manager, services.controller, services.notification_center)
        presenter.attach()

        app.state.services = services
        app.state.connection_manager = manager

        services.notification_center.start()
        services.controller.start()
        services.timer.start()

        yield

        # Cleanup
        services.controller.on_background()
        services.timer.stop()
        services.notification_center.shutdown()
        presenter.detach()
        services.store.close()

    app = FastAPI(title="Do Not Care", lifespan=lifespan)

    def _controller() -> ModeController:
        return app.state.services.controller

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/status")
    def status():
        return _controller().snapshot()

    @app.post("/api/toggle")
    def toggle(body: ToggleRequest):
        try:
            toggle_type = ToggleType(body.toggle)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown toggle '{body.toggle}'")
        _controller().toggle(toggle_type, body.value)
        return _controller().snapshot()

    @app.post("/api/mode/{mode}")
    def set_mode(mode: str):
        try:
            target = Mode(mode)
        except ValueError:
            raise HTTPException(status_code=404, detail=f"Unknown mode '{mode}'")
        _controller().set_mode(target)
        return _controller().snapshot()

    @app.post("/api/lifecycle/{event}")
    def lifecycle(event: str):
        controller = _controller()
        if event == "foreground":
            controller.on_foreground()
        elif event == "background":
            controller.on_background()
        else:
            raise HTTPException(status_code=404, detail=f"Unknown lifecycle event '{event}'")
        return controller.snapshot()

    @app.post("/api/notifications/action")
    def notification_action(body: ActionRequest):
        app.state.services.notification_center.perform_action(body.action_id, body.identifier)
        return _controller().snapshot()

    @app.get("/api/notifications/pending")
    def pending():
        services = app.state.services
        report = services.scheduler.check_pending()
        return {
            "count": report.count,
            "by_mode": {(m.value if m else "untagged"): n for m, n in report.by_mode.items()},
            "requests": [
                request_to_dict(r, services.notification_center.fire_time(r.identifier))
                for r in report.requests
            ],
        }

    @app.get("/api/notifications/delivered")
    def delivered():
        center = app.state.services.notification_center
        return {
            "badge": center.badge_count,
            "requests": [request_to_dict(r) for r in center.list_delivered()],
        }

    @app.get("/api/state")
    def stored_state():
        return app.state.services.store.items()

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        manager = app.state.connection_manager
        controller = _controller()
        # controller and store calls block, keep them off the event loop
        loop = asyncio.get_running_loop()

        await manager.connect(websocket)

        try:
            snapshot = await loop.run_in_executor(None, controller.snapshot)
            await websocket.send_text(json.dumps({"type": "mode", "data": snapshot}))

            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue

                msg_type = msg.get("type")
                payload = msg.get("data") or {}

                if msg_type == "toggle":
                    try:
                        toggle_type = ToggleType(payload.get("toggle"))
                    except ValueError:
                        logger.warning(f"Ignoring unknown toggle: {payload.get('toggle')}")
                    else:
                        await loop.run_in_executor(None, controller.toggle, toggle_type, bool(payload.get("value")))
                elif msg_type == "lifecycle":
                    if payload.get("event") == "foreground":
                        await loop.run_in_executor(None, controller.on_foreground)
                    elif payload.get("event") == "background":
                        await loop.run_in_executor(None, controller.on_background)
                elif msg_type == "action":
                    await loop.run_in_executor(
                        None,
                        app.state.services.notification_center.perform_action,
                        payload.get("action_id"),
                        payload.get("identifier"),
                    )
                elif msg_type == "status":
                    snapshot = await loop.run_in_executor(None, controller.snapshot)
                    await websocket.send_text(json.dumps({"type": "mode", "data": snapshot}))

        except WebSocketDisconnect:
            manager.disconnect(websocket)
        except Exception as e:
            logger.error(f"WS Error: {e}")
            manager.disconnect(websocket)

    return app


@dataclass
class Args:
    host: str = "127.0.0.1"
    port: int = 8000
    db_path: str = "donotcare.db"
    env_file: Optional[str] = None


def run_app(args: Args) -> None:
    settings = Settings.from_env(args.env_file)
    settings.host, settings.port, settings.db_path = args.host, args.port, args.db_path
    app = create_app(settings)
    try:
        uvicorn.run(app, host=settings.host, port=settings.port)
    except Exception as e:
        logger.error(f"error in run_app: {e}")


def main() -> None:
    defaults = Settings.from_env()
    parser = argparse.ArgumentParser(description="Local reminder engine for the do-not-care toggle.")
    parser.add_argument("--host", type=str, default=defaults.host)
    parser.add_argument("--port", type=int, default=defaults.port)
    parser.add_argument("--db-path", type=str, default=defaults.db_path)
    parser.add_argument("--env-file", type=str, default=None)
    parsed_args = parser.parse_args()
    run_app(Args(**vars(parsed_args)))


if __name__ == "__main__":
    logger.info("=" * 50)
    main()
