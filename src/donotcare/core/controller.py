# core/controller.py
import threading
import time
from typing import Callable, Optional, Tuple, Union

from donotcare.core.status import (
    AuthorizationStatus,
    CARE_ACTION,
    DEFAULT_ACTION,
    DISMISS_ACTION,
    Mode,
    ToggleType,
)
from donotcare.ports.memory_port import KeyValuePort
from donotcare.ports.notification_port import PermissionPort
from donotcare.tools.reminder_tools.reminder_scheduler import ReminderScheduler
from donotcare.tools.time_tools.mode_timer import ModeTimer
from donotcare.utils import Event
from donotcare.utils import custom_exception as ce
from donotcare.utils.logging_handler import setup_logger
from donotcare.utils.time_conversions import format_countdown, format_elapsed

logger = setup_logger(__name__)

DO_NOT_CARE_KEY = "toggle.do_not_care"
FOCUS_KEY = "toggle.focus"
PERMISSION_MESSAGE = "Please enable notifications in Settings to receive focus reminders."


class ModeController:
    """
    Owns the active mode. Every transition goes through here: the previous
    schedule is aborted, the timer and the scheduler are switched together,
    and the toggle flags are persisted as part of the same step.
    """

    def __init__(
        self,
        scheduler: ReminderScheduler,
        timer: ModeTimer,
        store: KeyValuePort,
        permissions: Optional[PermissionPort] = None,
        actions: Optional[Event] = None,
        auto_care_on_expiry: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self.scheduler = scheduler
        self.timer = timer
        self.store = store
        self.permissions = permissions
        self.auto_care_on_expiry = auto_care_on_expiry
        self.clock = clock

        self.do_not_care = False
        self.focus = False
        self.permission_denied = False
        self._prompted = False
        # toggles arrive on web threads, expiry and ticks on the ticker thread
        self._lock = threading.RLock()

        self.on_mode_changed = Event("controller.mode_changed")
        self.on_permission_prompt = Event("controller.permission_prompt")
        self.on_expired = Event("controller.expired")

        self.timer.on_expired.add_listener(self._on_timer_expired)
        self.timer.on_tick.add_listener(self._on_timer_tick)
        if actions is not None:
            actions.add_listener(self.handle_notification_action)

    @property
    def mode(self) -> Mode:
        return self.mode_for(self.do_not_care, self.focus)

    @staticmethod
    def mode_for(do_not_care: bool, focus: bool) -> Mode:
        if do_not_care and not focus:
            return Mode.DO_NOT_CARE
        if focus and not do_not_care:
            return Mode.FOCUS
        return Mode.CARING

    # --- Startup ---
    def start(self, now: Optional[float] = None) -> Mode:
        """Cold start: permissions, then the persisted toggles and timer session."""
        with self._lock:
            return self._start(self.clock() if now is None else now)

    def _start(self, now: float) -> Mode:
        self.setup_permissions()

        mode = self._restore_toggles()
        timer_mode = self.timer.restore(now)
        if timer_mode != mode:
            logger.warning(f"Timer session was {timer_mode.value}, toggles say {mode.value}; starting {mode.value} fresh")
            self.timer.set_mode(mode, now)

        self.do_not_care = mode == Mode.DO_NOT_CARE
        self.focus = mode == Mode.FOCUS
        if mode == Mode.CARING:
            self.scheduler.deactivate()
        elif self.timer.is_expired(now):
            logger.info(f"{mode.value} session already finished, not rescheduling reminders")
            self.scheduler.deactivate()
        else:
            self.scheduler.activate(mode, remaining=self._remaining(now))

        self._persist_toggles()
        self.on_mode_changed.emit(mode=mode)
        logger.info(f"Started in {mode.value} mode")
        return mode

    def setup_permissions(self) -> bool:
        if self.permissions is None:
            return True
        status = self.permissions.get_authorization_status()
        if status == AuthorizationStatus.NOT_DETERMINED:
            granted = self.permissions.request_authorization()
        else:
            granted = status == AuthorizationStatus.AUTHORIZED
            if granted:
                logger.info("Notifications already authorized")

        if granted:
            self.permission_denied = False
        else:
            self._permission_denied()
        return granted

    # --- Transitions ---
    def toggle(self, toggle: Union[ToggleType, str], value: bool, now: Optional[float] = None) -> Mode:
        toggle = ToggleType(toggle)
        logger.info(f"Toggle change - {toggle.value}: {value}")

        with self._lock:
            # abort the previous schedule before anything else changes
            self.scheduler.deactivate()

            do_not_care, focus = self.determine_new_state(self.do_not_care, self.focus, toggle, value)
            mode = self.mode_for(do_not_care, focus)
            self._apply(mode, now)
        return mode

    def set_mode(self, mode: Union[Mode, str], now: Optional[float] = None) -> Mode:
        mode = Mode(mode)
        with self._lock:
            self.scheduler.deactivate()
            self._apply(mode, now)
        return mode

    @staticmethod
    def determine_new_state(do_not_care: bool, focus: bool, toggle: ToggleType, value: bool) -> Tuple[bool, bool]:
        """Resolve a toggle change so that at most one mode is on."""
        if toggle == ToggleType.DO_NOT_CARE:
            return (True, False) if value else (False, focus)
        if toggle == ToggleType.FOCUS:
            return (False, True) if value else (do_not_care, False)
        # notification action: back to caring
        return False, False

    def handle_notification_action(self, action_id: str, request=None):
        """Single entry point for actions taken on delivered notifications."""
        sequence = request.sequence if request is not None else None
        if action_id == CARE_ACTION:
            logger.info(f"User chose to care (notification #{sequence})")
            self.toggle(ToggleType.NOTIFICATION, False)
        elif action_id == DISMISS_ACTION:
            logger.info("User chose to keep not caring")
        elif action_id == DEFAULT_ACTION:
            logger.info(f"User tapped notification #{sequence}")
        else:
            logger.warning(f"Unknown notification action: {action_id}")

    # --- Lifecycle ---
    def on_foreground(self, now: Optional[float] = None):
        now = self.clock() if now is None else now
        with self._lock:
            self.timer.on_resume(now)

            if self.permissions is not None and not self.permission_denied:
                if self.permissions.get_authorization_status() == AuthorizationStatus.DENIED:
                    self._permission_denied()

            expired = self.timer.is_expired(now)
            if expired and self.auto_care_on_expiry:
                self.set_mode(Mode.CARING, now)
                return
            self.scheduler.self_heal(now, expired=expired, remaining=self._remaining(now))

    def on_background(self, now: Optional[float] = None):
        with self._lock:
            self.timer.on_suspend(now)
            self._persist_toggles()
        logger.info(f"App going to background in {self.mode.value} mode - state saved")

    # --- Display ---
    def snapshot(self, now: Optional[float] = None) -> dict:
        now = self.clock() if now is None else now
        with self._lock:
            mode = self.mode
            status = self.timer.get_status(now)
            pending = self.scheduler.check_pending().count
        expired = status["is_expired"]
        value = status["value"]

        if mode == Mode.DO_NOT_CARE:
            duration = self.timer.countdowns.get(mode, 0)
            config = self.scheduler.configs.get(mode)
            interval = int(config.interval_seconds) if config else 0
            display_time = format_countdown(value)
            label = "session complete" if expired else "time remaining"
            status_text = (
                f"{int(duration // 60)}-minute session complete - toggle to restart" if expired
                else f"focus reminders active ({interval}s intervals for {int(duration // 60)} min)"
            )
        elif mode == Mode.FOCUS:
            config = self.scheduler.configs.get(mode)
            interval = int(config.interval_seconds) if config else 0
            display_time = format_elapsed(value)
            label = "time spent focusing"
            status_text = f"focus reminders active (every {interval}s until stopped)"
        else:
            display_time = format_elapsed(value)
            label = "time spent caring"
            status_text = "both reminder modes off - caring mode active"

        return {
            "mode": mode.value,
            "do_not_care": self.do_not_care,
            "focus": self.focus,
            "display_time": display_time,
            "display_label": label,
            "status_text": status_text,
            "value": value,
            "is_expired": expired,
            "permission_denied": self.permission_denied,
            "pending": pending,
        }

    # --- Internals ---
    def _apply(self, mode: Mode, now: Optional[float]):
        now = self.clock() if now is None else now
        self.do_not_care = mode == Mode.DO_NOT_CARE
        self.focus = mode == Mode.FOCUS
        self.timer.set_mode(mode, now)
        if mode != Mode.CARING:
            self.scheduler.activate(mode, remaining=self._remaining(now))
        self._persist_toggles()
        logger.info(f"Toggle change complete - doNotCare: {self.do_not_care}, focus: {self.focus}")
        self.on_mode_changed.emit(mode=mode)

    def _restore_toggles(self) -> Mode:
        has_state = self.store.contains(DO_NOT_CARE_KEY) or self.store.contains(FOCUS_KEY)
        if not has_state:
            logger.info("No saved state found - starting fresh in caring mode")
            return Mode.CARING
        do_not_care = bool(self.store.get(DO_NOT_CARE_KEY, False))
        focus = bool(self.store.get(FOCUS_KEY, False))
        if do_not_care and focus:
            logger.warning("Both modes were saved as on - defaulting to caring mode")
        logger.info(f"Restoring saved state - doNotCare: {do_not_care}, focus: {focus}")
        return self.mode_for(do_not_care, focus)

    def _persist_toggles(self):
        self.store.set(DO_NOT_CARE_KEY, self.do_not_care)
        self.store.set(FOCUS_KEY, self.focus)

    def _permission_denied(self):
        self.permission_denied = True
        if not self._prompted:
            self._prompted = True
            logger.warning(ce.PermissionDeniedError("Notification permission denied - prompting for settings"))
            self.on_permission_prompt.emit(message=PERMISSION_MESSAGE)

    def _remaining(self, now: float) -> Optional[float]:
        state = self.timer.state
        if state is None or not state.is_countdown:
            return None
        return state.value_at(now)

    def _on_timer_expired(self, mode: Mode):
        self.on_expired.emit(mode=mode)
        if not self.auto_care_on_expiry:
            return
        with self._lock:
            # a toggle may have replaced the session while this was queued
            if mode != self.mode or self.timer.mode != mode or not self.timer.is_expired():
                logger.debug(f"Ignoring stale {mode.value} expiry")
                return
            logger.info(f"{mode.value} session over, switching back to caring")
            self.set_mode(Mode.CARING)

    def _on_timer_tick(self, **kwargs):
        # skip the tick rather than wait; a transition joins the ticker thread
        if not self._lock.acquire(blocking=False):
            return
        try:
            self.scheduler.tick()
        finally:
            self._lock.release()
