"""
Local Notification Center

Stands in for the platform notification queue: every pending request is an
APScheduler job that moves the request to the delivered tray when it fires.
Like the platform queue it caps the number of pending requests and silently
drops anything submitted beyond that cap.
"""
import math
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from donotcare.core.models import ReminderRequest
from donotcare.core.status import AuthorizationStatus
from donotcare.ports.notification_port import NotificationPort, PermissionPort
from donotcare.utils import Event
from donotcare.utils import custom_exception as ce
from donotcare.utils.logging_handler import setup_logger

logger = setup_logger(__name__)

DEFAULT_MAX_PENDING = 64
MIN_REPEAT_INTERVAL = 60.0  # repeating triggers shorter than this are rejected


class LocalNotificationCenter(NotificationPort, PermissionPort):
    def __init__(
        self,
        scheduler: Optional[BackgroundScheduler] = None,
        max_pending: int = DEFAULT_MAX_PENDING,
        auto_grant: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.scheduler = scheduler or BackgroundScheduler(timezone=pytz.utc)
        self.max_pending = max_pending
        self.auto_grant = auto_grant
        self.clock = clock

        self._lock = threading.Lock()
        # identifier -> (request, submitted_at)
        self._pending: Dict[str, Tuple[ReminderRequest, float]] = {}
        self._delivered: List[ReminderRequest] = []
        self._badge = 0
        self._authorization = AuthorizationStatus.NOT_DETERMINED

        self.on_delivered = Event("notifications.delivered")
        self.on_action = Event("notifications.action")
        self.on_badge_changed = Event("notifications.badge_changed")

    # --- Lifecycle ---
    def start(self):
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info(f"Notification center started (ceiling {self.max_pending} pending).")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Notification center stopped.")

    # --- PermissionPort ---
    def request_authorization(self) -> bool:
        if self._authorization == AuthorizationStatus.NOT_DETERMINED:
            self._authorization = (
                AuthorizationStatus.AUTHORIZED if self.auto_grant else AuthorizationStatus.DENIED
            )
        granted = self._authorization == AuthorizationStatus.AUTHORIZED
        if granted:
            logger.info("Notification permission granted")
        else:
            logger.warning("Notification permission denied")
        return granted

    def get_authorization_status(self) -> AuthorizationStatus:
        return self._authorization

    def set_authorization_status(self, status: AuthorizationStatus):
        """Simulates the user changing the permission in system settings."""
        self._authorization = status

    # --- NotificationPort ---
    def submit(self, request: ReminderRequest) -> None:
        offset = request.offset_seconds
        if offset is None or not math.isfinite(offset) or offset < 0:
            raise ce.SubmissionFailedError(request.identifier, f"invalid trigger offset {offset!r}")
        if request.repeats and offset < MIN_REPEAT_INTERVAL:
            raise ce.SubmissionFailedError(
                request.identifier,
                f"repeating interval must be at least {int(MIN_REPEAT_INTERVAL)}s"
            )

        if self._authorization == AuthorizationStatus.DENIED:
            logger.debug(f"Permission denied, ignoring {request.identifier}")
            return

        submitted_at = self.clock()
        with self._lock:
            replacing = request.identifier in self._pending
            if not replacing and len(self._pending) >= self.max_pending:
                logger.debug(f"Pending ceiling reached, dropping {request.identifier}")
                return
            self._pending[request.identifier] = (request, submitted_at)

        fire_at = datetime.fromtimestamp(submitted_at + offset, tz=pytz.utc)
        if request.repeats:
            self.scheduler.add_job(
                self._fire,
                "interval",
                seconds=offset,
                start_date=fire_at,
                args=[request.identifier],
                id=request.identifier,
                replace_existing=True,
            )
        else:
            self.scheduler.add_job(
                self._fire,
                "date",
                run_date=fire_at,
                args=[request.identifier],
                id=request.identifier,
                replace_existing=True,
                misfire_grace_time=None,
            )
        logger.debug(f"Scheduled {request.identifier} (#{request.sequence}) for {fire_at.isoformat(timespec='seconds')}")

    def cancel_pending(self, identifiers: Optional[Iterable[str]] = None) -> None:
        with self._lock:
            if identifiers is None:
                targets = list(self._pending)
            else:
                targets = [i for i in identifiers if i in self._pending]
            for identifier in targets:
                del self._pending[identifier]

        for identifier in targets:
            try:
                self.scheduler.remove_job(identifier)
            except JobLookupError:
                # fired between the table update and here
                logger.debug(f"Job {identifier} already gone")
        logger.debug(f"Removed {len(targets)} pending notifications")

    def cancel_delivered(self) -> None:
        with self._lock:
            count = len(self._delivered)
            self._delivered.clear()
        logger.debug(f"Cleared {count} delivered notifications")

    def list_pending(self) -> List[ReminderRequest]:
        with self._lock:
            entries = list(self._pending.values())
        entries.sort(key=lambda e: (e[1] + e[0].offset_seconds, e[0].sequence))
        return [req for req, _ in entries]

    def list_delivered(self) -> List[ReminderRequest]:
        with self._lock:
            return list(self._delivered)

    def set_badge_count(self, count: int) -> None:
        with self._lock:
            self._badge = max(0, int(count))
            badge = self._badge
        self.on_badge_changed.emit(badge)

    @property
    def badge_count(self) -> int:
        return self._badge

    def fire_time(self, identifier: str) -> Optional[float]:
        """Wall-clock time a pending request is due, or None."""
        with self._lock:
            entry = self._pending.get(identifier)
        if entry is None:
            return None
        request, submitted_at = entry
        return submitted_at + request.offset_seconds

    # --- Delivery & user actions ---
    def _fire(self, identifier: str):
        with self._lock:
            entry = self._pending.get(identifier)
            if entry is None:
                return
            request = entry[0]
            if not request.repeats:
                del self._pending[identifier]
            self._delivered.append(request)
            self._badge += request.badge
            badge = self._badge
        logger.info(f"Delivered #{request.sequence} {identifier}: {request.body}")
        self.on_delivered.emit(request)
        self.on_badge_changed.emit(badge)

    def perform_action(self, action_id: str, identifier: Optional[str] = None):
        """Route a user action on a delivered notification to ``on_action`` listeners."""
        request = None
        if identifier is not None:
            with self._lock:
                for i, delivered in enumerate(self._delivered):
                    if delivered.identifier == identifier:
                        request = self._delivered.pop(i)
                        break
        logger.info(f"Action {action_id} on {identifier or 'notification'}")
        self.on_action.emit(action_id, request)
