"""Value types shared by the scheduler, the mode timer and the adapters."""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from donotcare.core.status import Mode, WAKE_CATEGORY


@dataclass(frozen=True)
class BatchConfig:
    """How one mode's reminders are laid out in time."""
    batch_size: int
    interval_seconds: float
    lead_seconds: float = 1.0
    title: str = "Do Not Care"
    messages: Tuple[str, ...] = ()
    category: str = WAKE_CATEGORY
    strategy: str = "batch"
    low_water_mark: int = 5

    def __post_init__(self):
        if self.batch_size < 0:
            raise ValueError("batch_size cannot be negative.")
        if self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        if self.lead_seconds < 0:
            raise ValueError("lead_seconds cannot be negative.")
        if self.batch_size > 0 and not self.messages:
            raise ValueError("A non-empty batch needs a message pool.")
        # tuples keep the config hashable when a list is passed in
        object.__setattr__(self, "messages", tuple(self.messages))


@dataclass
class ReminderRequest:
    identifier: str
    offset_seconds: float
    title: str
    body: str
    sequence: int
    mode: Mode
    batch_id: str = ""
    category: str = WAKE_CATEGORY
    repeats: bool = False
    badge: int = 1
    user_info: Dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchHandle:
    """The batch most recently submitted by ``ReminderScheduler.activate``."""
    batch_id: str
    mode: Mode
    submitted_at: float
    requests: List[ReminderRequest] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    strategy: str = "batch"

    @property
    def identifiers(self) -> List[str]:
        return [r.identifier for r in self.requests]

    @property
    def submitted_count(self) -> int:
        return len(self.requests) - len(self.failed)

    def expected_pending(self, now: Optional[float] = None) -> int:
        """Requests of this batch whose fire time has not passed yet."""
        now = time.time() if now is None else now
        failed = set(self.failed)
        count = 0
        for req in self.requests:
            if req.identifier in failed:
                continue
            if req.repeats or self.submitted_at + req.offset_seconds > now:
                count += 1
        return count


@dataclass
class PendingReport:
    count: int
    by_mode: Dict[Optional[Mode], int]
    requests: List[ReminderRequest] = field(default_factory=list)

    def count_for(self, mode: Mode) -> int:
        return self.by_mode.get(mode, 0)


@dataclass
class TimerState:
    mode: Mode
    start_timestamp: float
    accumulated_value: float = 0.0
    is_countdown: bool = False

    def elapsed_at(self, now: float) -> float:
        # a clock that went backwards counts as no time passed
        return max(0.0, now - self.start_timestamp)

    def value_at(self, now: float) -> float:
        elapsed = self.elapsed_at(now)
        if self.is_countdown:
            return max(0.0, self.accumulated_value - elapsed)
        return elapsed

    def is_expired_at(self, now: float) -> bool:
        return self.is_countdown and self.value_at(now) <= 0
