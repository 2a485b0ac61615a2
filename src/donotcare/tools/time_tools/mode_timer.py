import time
from typing import Callable, Dict, Optional

from donotcare.core.models import TimerState
from donotcare.core.status import Mode
from donotcare.ports.memory_port import KeyValuePort
from donotcare.tools.time_tools.base_tool import TimeTool
from donotcare.utils import Event
from donotcare.utils import custom_exception as ce
from donotcare.utils.logging_handler import setup_logger
from donotcare.utils.time_conversions import format_countdown, format_elapsed

logger = setup_logger(__name__)

MODE_KEY = "timer.mode"
HAS_SESSION_KEY = "timer.has_active_session"
SUSPENDED_AT_KEY = "timer.suspended_at"


def start_key(mode: Mode) -> str:
    return f"timer.start.{mode.value}"


class ModeTimer(TimeTool):
    """
    Elapsed / remaining time for the active mode.

    The value is always derived from a wall-clock start timestamp, never
    from counting ticks, so it stays correct across suspends of any length.
    Every mode change starts from zero (or from the full countdown); time
    spent in the previous mode is discarded.
    """
    def __init__(
        self,
        store: KeyValuePort,
        countdowns: Optional[Dict[Mode, float]] = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = 1.0,
    ):
        super().__init__(tick_interval=tick_interval)
        self.store = store
        self.countdowns = dict(countdowns or {})
        self.clock = clock
        self._state: Optional[TimerState] = None
        self._value = 0.0
        self._expired_emitted = False

        self.on_expired = Event("timer.expired")
        self.on_mode_set = Event("timer.mode_set")

    @property
    def mode(self) -> Optional[Mode]:
        return self._state.mode if self._state else None

    @property
    def state(self) -> Optional[TimerState]:
        return self._state

    @property
    def value(self) -> float:
        return self._value

    def set_mode(self, mode: Mode, now: Optional[float] = None) -> bool:
        """
        Starts a fresh session for ``mode``.

        Returns:
            bool: False when ``mode`` was already active and nothing changed.
        """
        if self._state is not None and self._state.mode == mode:
            logger.debug(f"Timer already in {mode.value}, keeping session.")
            return False

        now = self.clock() if now is None else now
        previous = self.mode
        duration = self.countdowns.get(mode)
        self._state = TimerState(
            mode=mode,
            start_timestamp=now,
            accumulated_value=float(duration) if duration else 0.0,
            is_countdown=bool(duration),
        )
        self._value = self._state.value_at(now)
        self._expired_emitted = False
        self._persist_session(clear_other_modes=True)

        logger.info(
            f"Mode switch: {previous.value if previous else 'none'} -> {mode.value} "
            f"({'countdown ' + format_countdown(duration) if duration else 'elapsed'})"
        )
        self.on_mode_set.emit(mode=mode, start_timestamp=now)
        self.restart()
        return True

    def tick(self, now: Optional[float] = None) -> float:
        # set_mode may swap the session from another thread mid-tick
        state = self._state
        if state is None:
            return 0.0
        now = self.clock() if now is None else now
        value = state.value_at(now)
        self._value = value
        self.on_tick.emit(
            mode=state.mode,
            value=value,
            formatted=self.format_value(value),
            is_countdown=state.is_countdown,
        )
        if state.is_expired_at(now) and not self._expired_emitted and state is self._state:
            self._expired_emitted = True
            logger.info(f"{state.mode.value} countdown finished.")
            self.on_expired.emit(mode=state.mode)
        return value

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self._state is None:
            return False
        now = self.clock() if now is None else now
        return self._state.is_expired_at(now)

    def on_suspend(self, now: Optional[float] = None):
        """Persist what is needed to rebuild the value after a suspend."""
        if self._state is None:
            return
        now = self.clock() if now is None else now
        self._persist_session()
        self.store.set(SUSPENDED_AT_KEY, now)
        logger.info(
            f"Suspending - {self._state.mode.value} session at "
            f"{self.format_value(self._state.value_at(now))} saved"
        )

    def on_resume(self, now: Optional[float] = None) -> float:
        """
        Warm resume: keep the in-memory mode, take its start time from storage
        and tick immediately.
        """
        if self._state is None:
            self.restore(now)
            return self.tick(now)

        saved_mode = self.store.get(MODE_KEY)
        if saved_mode != self._state.mode.value:
            logger.warning(ce.StaleStateError(
                f"Stored mode '{saved_mode}' differs from running mode "
                f"'{self._state.mode.value}', keeping the running session."
            ))
            self._persist_session()
        else:
            saved_start = self.store.get(start_key(self._state.mode))
            if saved_start is not None and saved_start != self._state.start_timestamp:
                logger.debug(f"Start time restored from storage: {saved_start}")
                self._state.start_timestamp = float(saved_start)

        self.store.remove(SUSPENDED_AT_KEY)
        value = self.tick(now)
        logger.info(f"Resumed {self._state.mode.value} session at {self.format_value(value)}")
        return value

    def restore(self, now: Optional[float] = None) -> Mode:
        """
        Cold start: rebuild the session from storage, or begin a fresh
        caring session if nothing usable was stored.
        """
        now = self.clock() if now is None else now
        has_session = self.store.get(HAS_SESSION_KEY, False)
        saved_mode = self.store.get(MODE_KEY)

        mode = None
        if has_session and saved_mode is not None:
            try:
                mode = Mode(saved_mode)
            except ValueError:
                logger.warning(f"Ignoring unknown stored mode '{saved_mode}'")

        saved_start = self.store.get(start_key(mode)) if mode else None
        if mode is None or saved_start is None:
            logger.info("No active session to restore - starting fresh")
            self._state = None
            self.set_mode(Mode.CARING, now)
            return Mode.CARING

        duration = self.countdowns.get(mode)
        self._state = TimerState(
            mode=mode,
            start_timestamp=float(saved_start),
            accumulated_value=float(duration) if duration else 0.0,
            is_countdown=bool(duration),
        )
        self._expired_emitted = False
        self._value = self._state.value_at(now)
        logger.info(
            f"Restored {mode.value} session - {self.format_value(self._value)} "
            f"{'remaining' if self._state.is_countdown else 'elapsed'}"
        )
        return mode

    def clear_session(self):
        for mode in Mode:
            self.store.remove(start_key(mode))
        for key in (MODE_KEY, HAS_SESSION_KEY, SUSPENDED_AT_KEY):
            self.store.remove(key)
        self._state = None
        self._value = 0.0
        self.on_reset.emit()
        logger.info("Session data cleared")

    def format_value(self, value: float) -> str:
        if self._state is not None and self._state.is_countdown:
            return format_countdown(value)
        return format_elapsed(value)

    def get_status(self, now: Optional[float] = None):
        if self._state is None:
            return {"mode": None, "value": 0.0, "formatted": format_elapsed(0),
                    "is_countdown": False, "is_expired": False, "start_timestamp": None}
        now = self.clock() if now is None else now
        value = self._state.value_at(now)
        return {
            "mode": self._state.mode.value,
            "value": value,
            "formatted": self.format_value(value),
            "is_countdown": self._state.is_countdown,
            "is_expired": self._state.is_expired_at(now),
            "start_timestamp": self._state.start_timestamp,
        }

    def _persist_session(self, clear_other_modes: bool = False):
        mode = self._state.mode
        self.store.set(start_key(mode), self._state.start_timestamp)
        if clear_other_modes:
            for other in Mode:
                if other != mode:
                    self.store.remove(start_key(other))
        self.store.set(MODE_KEY, mode.value)
        self.store.set(HAS_SESSION_KEY, True)
