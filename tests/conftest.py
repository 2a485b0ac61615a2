import os
import random
import tempfile

# keep test runs from writing into the package's logs directory
os.environ.setdefault("DONOTCARE_LOG_DIR", tempfile.mkdtemp(prefix="donotcare-logs-"))

import pytest

from donotcare.adapters.memory_adapters.sqlite_kv_adapter import SqliteKeyValueAdapter
from donotcare.config import Settings
from donotcare.core.controller import ModeController
from donotcare.core.status import AuthorizationStatus
from donotcare.ports.notification_port import NotificationPort, PermissionPort
from donotcare.tools.reminder_tools.reminder_scheduler import ReminderScheduler
from donotcare.tools.time_tools.mode_timer import ModeTimer
from donotcare.utils import Event
from donotcare.utils import custom_exception as ce

START = 1_700_000_000.0


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


class FakeNotificationCenter(NotificationPort, PermissionPort):
    """In-memory notification queue that records every call made to it."""

    def __init__(self, clock, max_pending=64, status=AuthorizationStatus.NOT_DETERMINED, grant=True):
        self.clock = clock
        self.max_pending = max_pending
        self.status = status
        self.grant = grant
        self.pending = {}
        self.delivered = []
        self.badge = 0
        self.calls = []
        self.fail_sequences = set()
        self.authorization_requests = 0
        self.on_delivered = Event()
        self.on_action = Event()

    def submit(self, request):
        self.calls.append("submit")
        if request.sequence in self.fail_sequences:
            raise ce.SubmissionFailedError(request.identifier, "rejected by queue")
        if self.status == AuthorizationStatus.DENIED:
            return
        if request.identifier not in self.pending and len(self.pending) >= self.max_pending:
            return
        self.pending[request.identifier] = (request, self.clock())

    def cancel_pending(self, identifiers=None):
        self.calls.append("cancel_pending")
        targets = list(self.pending) if identifiers is None else list(identifiers)
        for identifier in targets:
            self.pending.pop(identifier, None)

    def cancel_delivered(self):
        self.calls.append("cancel_delivered")
        self.delivered.clear()

    def list_pending(self):
        entries = sorted(self.pending.values(), key=lambda e: e[1] + e[0].offset_seconds)
        return [req for req, _ in entries]

    def list_delivered(self):
        return list(self.delivered)

    def set_badge_count(self, count):
        self.calls.append("set_badge_count")
        self.badge = count

    def request_authorization(self):
        self.authorization_requests += 1
        self.status = AuthorizationStatus.AUTHORIZED if self.grant else AuthorizationStatus.DENIED
        return self.grant

    def get_authorization_status(self):
        return self.status

    def deliver_due(self, now=None):
        """Move every one-shot request whose fire time has passed to the tray."""
        now = self.clock() if now is None else now
        fired = []
        for identifier, (request, submitted_at) in list(self.pending.items()):
            if not request.repeats and submitted_at + request.offset_seconds <= now:
                del self.pending[identifier]
                self.delivered.append(request)
                self.badge += request.badge
                fired.append(request)
        for request in fired:
            self.on_delivered.emit(request)
        return fired


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    kv = SqliteKeyValueAdapter(":memory:")
    yield kv
    kv.close()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def notifier(clock):
    return FakeNotificationCenter(clock)


def make_scheduler(notifier, store, settings, clock):
    return ReminderScheduler(
        notifier=notifier,
        store=store,
        configs=settings.batch_configs(),
        permissions=notifier,
        max_pending=settings.max_pending,
        clock=clock,
        rng=random.Random(7),
    )


def make_controller(notifier, store, settings, clock, **kwargs):
    scheduler = make_scheduler(notifier, store, settings, clock)
    timer = ModeTimer(store, countdowns=settings.countdowns, clock=clock)
    return ModeController(
        scheduler=scheduler,
        timer=timer,
        store=store,
        permissions=notifier,
        actions=notifier.on_action,
        clock=clock,
        **kwargs,
    )


@pytest.fixture
def scheduler(notifier, store, settings, clock):
    return make_scheduler(notifier, store, settings, clock)


@pytest.fixture
def timer(store, settings, clock):
    return ModeTimer(store, countdowns=settings.countdowns, clock=clock)


@pytest.fixture
def controller(notifier, store, settings, clock):
    return make_controller(notifier, store, settings, clock)
