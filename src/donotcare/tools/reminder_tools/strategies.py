"""
Scheduling strategies.

A strategy turns a mode activation into reminder requests. ``BatchStrategy``
pre-schedules a bounded run of one-shot triggers and is the default because
its requests survive process suspension. ``RepeatingStrategy`` submits a
single repeating trigger with fixed content. ``LiveTimerStrategy`` emits
reminders from the periodic tick and only works while the process runs.
"""
import random
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from donotcare.core.models import BatchConfig, ReminderRequest
from donotcare.core.status import Mode
from donotcare.tools.reminder_tools.messages import pick_message


class SchedulingStrategy(ABC):
    name = "base"
    # whether self-healing should top the batch back up
    refillable = False

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    @abstractmethod
    def build(self, mode: Mode, config: BatchConfig, batch_id: str, now: float) -> List[ReminderRequest]:
        """Requests to submit right after the previous batch was cancelled."""
        pass

    def on_tick(self, now: float) -> List[ReminderRequest]:
        """Requests that became due on this tick. Most strategies have none."""
        return []

    def reset(self):
        pass

    def _request(self, mode, config, batch_id, sequence, offset, now, repeats=False) -> ReminderRequest:
        identifier = f"{mode.value}_{batch_id}_{sequence}"
        return ReminderRequest(
            identifier=identifier,
            offset_seconds=offset,
            title=config.title,
            body=pick_message(config.messages, self.rng),
            sequence=sequence,
            mode=mode,
            batch_id=batch_id,
            category=config.category,
            repeats=repeats,
            user_info={
                "mode": mode.value,
                "sequence": sequence,
                "batch_id": batch_id,
                "scheduled_time": now + offset,
                "notification_type": "repeating_reminder" if repeats else "continuous_reminder",
                "wake_screen": True,
            },
        )


class BatchStrategy(SchedulingStrategy):
    name = "batch"
    refillable = True

    def build(self, mode, config, batch_id, now):
        return [
            self._request(mode, config, batch_id, i + 1, config.lead_seconds + i * config.interval_seconds, now)
            for i in range(config.batch_size)
        ]


class RepeatingStrategy(SchedulingStrategy):
    name = "repeating"

    def build(self, mode, config, batch_id, now):
        if config.batch_size == 0:
            return []
        return [self._request(mode, config, batch_id, 1, config.interval_seconds, now, repeats=True)]


class LiveTimerStrategy(SchedulingStrategy):
    name = "live"

    def __init__(self, rng: Optional[random.Random] = None):
        super().__init__(rng)
        self.reset()

    def reset(self):
        self._mode = None
        self._config = None
        self._batch_id = None
        self._sequence = 0
        self._last_fired = None

    def build(self, mode, config, batch_id, now):
        self._mode, self._config, self._batch_id = mode, config, batch_id
        self._sequence = 0
        self._last_fired = now
        if config.batch_size == 0:
            return []
        self._sequence = 1
        return [self._request(mode, config, batch_id, 1, 0, now)]

    def on_tick(self, now):
        if self._config is None or self._sequence >= self._config.batch_size:
            return []
        if now - self._last_fired < self._config.interval_seconds:
            return []
        self._sequence += 1
        self._last_fired = now
        return [self._request(self._mode, self._config, self._batch_id, self._sequence, 0, now)]


STRATEGIES: Dict[str, type] = {
    BatchStrategy.name: BatchStrategy,
    RepeatingStrategy.name: RepeatingStrategy,
    LiveTimerStrategy.name: LiveTimerStrategy,
}


def make_strategy(name: str, rng: Optional[random.Random] = None) -> SchedulingStrategy:
    try:
        return STRATEGIES[name](rng)
    except KeyError:
        raise ValueError(f"Unknown scheduling strategy '{name}'") from None
