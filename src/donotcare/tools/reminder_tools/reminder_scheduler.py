import dataclasses
import math
import random
import time
import uuid
from collections import Counter
from typing import Callable, Dict, Optional

from donotcare.core.models import BatchConfig, BatchHandle, PendingReport, ReminderRequest
from donotcare.core.status import AuthorizationStatus, Mode
from donotcare.ports.memory_port import KeyValuePort
from donotcare.ports.notification_port import NotificationPort, PermissionPort
from donotcare.tools.reminder_tools.strategies import SchedulingStrategy, make_strategy
from donotcare.utils import custom_exception as ce
from donotcare.utils.logging_handler import setup_logger

logger = setup_logger(__name__)

ACTIVE_BATCH_KEY = "scheduler.active_batch"


class ReminderScheduler:
    """
    Owns the set of pending reminder requests.

    Activating a mode always clears the notification queue, the delivered
    tray and the badge before the new batch is submitted, so at most one
    batch is ever pending.
    """

    def __init__(
        self,
        notifier: NotificationPort,
        store: KeyValuePort,
        configs: Dict[Mode, BatchConfig],
        permissions: Optional[PermissionPort] = None,
        max_pending: int = 64,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        self.notifier = notifier
        self.store = store
        self.configs = dict(configs)
        self.permissions = permissions
        self.max_pending = max_pending
        self.clock = clock
        self.rng = rng or random.Random()

        self._strategies: Dict[str, SchedulingStrategy] = {}
        self._active: Optional[BatchHandle] = None
        self._active_config: Optional[BatchConfig] = None

    @property
    def active_batch(self) -> Optional[BatchHandle]:
        return self._active

    @property
    def active_mode(self) -> Optional[Mode]:
        return self._active.mode if self._active else None

    def activate(
        self,
        mode: Mode,
        config: Optional[BatchConfig] = None,
        remaining: Optional[float] = None,
    ) -> BatchHandle:
        """
        Replace whatever is pending with a fresh batch for ``mode``.

        Args:
            mode (Mode): The mode producing the reminders.
            config (BatchConfig): Overrides the configured layout for this mode.
            remaining (float): Seconds left on a countdown session. No request
                is scheduled to fire after that.

        Returns:
            BatchHandle: The submitted batch, including identifiers that failed.
        """
        config = config or self.configs.get(mode)
        if config is None:
            raise ValueError(f"No reminder configuration for mode '{mode.value}'")

        if config.batch_size > self.max_pending:
            logger.warning(
                f"Batch of {config.batch_size} exceeds the pending ceiling, clamping to {self.max_pending}."
            )
            config = dataclasses.replace(config, batch_size=self.max_pending)
        base_config = config
        config = self._fit_to_session(config, remaining)

        # Every cancel call is issued before the first submission.
        self._clear_all()

        if self.permissions and self.permissions.get_authorization_status() == AuthorizationStatus.DENIED:
            logger.warning("Notification permission denied; reminders will not be shown.")

        strategy = self._strategy_for(config.strategy)
        strategy.reset()
        now = self.clock()
        batch_id = uuid.uuid4().hex[:8]
        handle = BatchHandle(batch_id=batch_id, mode=mode, submitted_at=now, strategy=strategy.name)

        for request in strategy.build(mode, config, batch_id, now):
            self._submit(handle, request)

        self._active = handle
        self._active_config = base_config
        self._persist(handle, config)

        if handle.requests:
            first, last = handle.requests[0], handle.requests[-1]
            logger.info(
                f"Scheduled {handle.submitted_count}/{len(handle.requests)} {mode.value} reminders "
                f"({strategy.name}): first in {first.offset_seconds:g}s, last in {last.offset_seconds:g}s"
            )
        else:
            logger.info(f"Activated {mode.value} with no reminders ({strategy.name}).")
        return handle

    def deactivate(self):
        """Cancel everything and forget the active batch. Safe to call repeatedly."""
        self._clear_all()
        if self._active is not None:
            logger.info(f"Deactivated {self._active.mode.value} reminders (batch {self._active.batch_id}).")
            self._strategy_for(self._active.strategy).reset()
        self._active = None
        self._active_config = None
        self.store.remove(ACTIVE_BATCH_KEY)

    def check_pending(self) -> PendingReport:
        requests = self.notifier.list_pending()
        by_mode = Counter(self._mode_of(r) for r in requests)
        return PendingReport(count=len(requests), by_mode=dict(by_mode), requests=requests)

    def self_heal(
        self,
        now: Optional[float] = None,
        expired: bool = False,
        remaining: Optional[float] = None,
    ) -> Optional[BatchHandle]:
        """
        Top the active batch back up when it is running low.

        For countdown sessions ``remaining`` bounds the refill so nothing
        fires after the countdown ends.

        Returns the new batch if one was scheduled, otherwise None.
        """
        handle, config = self._active, self._active_config
        if handle is None or config is None:
            return None
        if expired or (remaining is not None and remaining <= 0):
            logger.debug(f"{handle.mode.value} session expired, not refilling.")
            return None
        if not self._strategy_for(handle.strategy).refillable:
            return None

        try:
            pending = self.verify_capacity(now)
        except ce.CapacityExceededError as e:
            logger.warning(e)
            pending = self.check_pending().count_for(handle.mode)

        threshold = min(config.low_water_mark, len(handle.requests))
        if pending < threshold:
            logger.warning(f"Only {pending} {handle.mode.value} reminders left, rescheduling.")
            return self.activate(handle.mode, config, remaining=remaining)
        return None

    def verify_capacity(self, now: Optional[float] = None) -> int:
        """
        Compare what the queue holds for the active mode with what should still be pending.

        Returns the pending count for the active mode.

        Raises:
            CapacityExceededError: If requests were dropped by the queue.
        """
        handle = self._active
        report = self.check_pending()
        if handle is None:
            return 0
        now = self.clock() if now is None else now
        pending = report.count_for(handle.mode)
        expected = handle.expected_pending(now)
        if pending < expected:
            raise ce.CapacityExceededError(
                f"{expected - pending} of {expected} expected {handle.mode.value} reminders are missing"
            )
        return pending

    def tick(self, now: Optional[float] = None):
        """Submit anything the active strategy wants to send on this tick."""
        handle = self._active
        if handle is None:
            return
        now = self.clock() if now is None else now
        for request in self._strategy_for(handle.strategy).on_tick(now):
            self._submit(handle, request)

    def last_persisted_batch(self) -> Optional[dict]:
        """The batch record written by the last activation, if any survived."""
        return self.store.get(ACTIVE_BATCH_KEY)

    # --- Internals ---
    def _clear_all(self):
        self.notifier.cancel_pending()
        self.notifier.cancel_delivered()
        self.notifier.set_badge_count(0)

    @staticmethod
    def _fit_to_session(config: BatchConfig, remaining: Optional[float]) -> BatchConfig:
        if remaining is None:
            return config
        if remaining < config.lead_seconds:
            fitting = 0
        else:
            fitting = math.floor((remaining - config.lead_seconds) / config.interval_seconds) + 1
        if fitting >= config.batch_size:
            return config
        logger.info(f"Only {remaining:.0f}s left in the session, scheduling {fitting} of {config.batch_size} reminders.")
        return dataclasses.replace(config, batch_size=fitting)

    def _submit(self, handle: BatchHandle, request: ReminderRequest):
        handle.requests.append(request)
        try:
            self.notifier.submit(request)
        except ce.SubmissionFailedError as e:
            logger.error(f"Failed to schedule notification {request.sequence}: {e.reason}")
            handle.failed.append(request.identifier)
        except Exception:
            logger.exception(f"Unexpected error scheduling notification {request.sequence}")
            handle.failed.append(request.identifier)

    def _strategy_for(self, name: str) -> SchedulingStrategy:
        if name not in self._strategies:
            self._strategies[name] = make_strategy(name, self.rng)
        return self._strategies[name]

    def _persist(self, handle: BatchHandle, config: BatchConfig):
        self.store.set(ACTIVE_BATCH_KEY, {
            "mode": handle.mode.value,
            "batch_id": handle.batch_id,
            "submitted_at": handle.submitted_at,
            "size": len(handle.requests),
            "interval_seconds": config.interval_seconds,
            "strategy": handle.strategy,
        })

    @staticmethod
    def _mode_of(request: ReminderRequest) -> Optional[Mode]:
        if isinstance(request.mode, Mode):
            return request.mode
        try:
            return Mode(request.user_info.get("mode"))
        except ValueError:
            return None
