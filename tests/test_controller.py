import threading

import pytest

from donotcare.adapters.memory_adapters.sqlite_kv_adapter import SqliteKeyValueAdapter
from donotcare.core.controller import DO_NOT_CARE_KEY, FOCUS_KEY, ModeController
from donotcare.core.status import (
    AuthorizationStatus,
    CARE_ACTION,
    DISMISS_ACTION,
    Mode,
    ToggleType,
)

from conftest import FakeNotificationCenter, make_controller


def test_fresh_start_is_caring_and_asks_permission(controller, notifier):
    assert controller.start() == Mode.CARING

    assert notifier.authorization_requests == 1
    assert controller.permission_denied is False
    assert notifier.pending == {}
    assert controller.snapshot()["display_time"] == "00:00"


def test_do_not_care_toggle_schedules_batch(controller, store):
    controller.start()
    assert controller.toggle(ToggleType.DO_NOT_CARE, True) == Mode.DO_NOT_CARE

    assert controller.scheduler.check_pending().count_for(Mode.DO_NOT_CARE) == 60
    assert store.get(DO_NOT_CARE_KEY) is True
    assert store.get(FOCUS_KEY) is False


def test_focus_toggle_turns_do_not_care_off(controller):
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    controller.toggle(ToggleType.FOCUS, True)

    assert (controller.do_not_care, controller.focus) == (False, True)
    report = controller.scheduler.check_pending()
    assert report.count_for(Mode.DO_NOT_CARE) == 0
    assert report.count_for(Mode.FOCUS) == 64


def test_turning_active_toggle_off_returns_to_caring(controller, notifier):
    controller.start()
    controller.toggle(ToggleType.FOCUS, True)
    controller.toggle(ToggleType.FOCUS, False)

    assert controller.mode == Mode.CARING
    assert notifier.pending == {}
    assert notifier.badge == 0


@pytest.mark.parametrize("state, toggle, value, expected", [
    ((False, False), ToggleType.DO_NOT_CARE, True, (True, False)),
    ((False, True), ToggleType.DO_NOT_CARE, True, (True, False)),
    ((True, False), ToggleType.FOCUS, True, (False, True)),
    ((True, False), ToggleType.FOCUS, False, (True, False)),
    ((False, True), ToggleType.DO_NOT_CARE, False, (False, True)),
    ((True, False), ToggleType.NOTIFICATION, False, (False, False)),
])
def test_determine_new_state(state, toggle, value, expected):
    assert ModeController.determine_new_state(*state, toggle, value) == expected


def test_care_action_returns_to_caring(controller, notifier, clock):
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    clock.advance(50)
    delivered = notifier.deliver_due()

    notifier.on_action.emit(CARE_ACTION, delivered[0])

    assert controller.mode == Mode.CARING
    assert notifier.pending == {}


def test_dismiss_action_keeps_mode(controller, notifier):
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)

    controller.handle_notification_action(DISMISS_ACTION)
    controller.handle_notification_action("SNOOZE_ACTION")

    assert controller.mode == Mode.DO_NOT_CARE
    assert len(notifier.pending) == 60


def test_mode_survives_restart(store, settings, clock, notifier):
    first = make_controller(notifier, store, settings, clock)
    first.start()
    first.toggle(ToggleType.FOCUS, True)
    first.on_background()

    clock.advance(120)
    fresh_notifier = FakeNotificationCenter(clock, status=AuthorizationStatus.AUTHORIZED)
    second = make_controller(fresh_notifier, store, settings, clock)

    assert second.start() == Mode.FOCUS
    assert second.focus is True
    assert second.snapshot()["value"] == 120
    assert len(fresh_notifier.pending) == 64


def test_both_toggles_saved_on_starts_caring(store, settings, clock, notifier):
    store.set(DO_NOT_CARE_KEY, True)
    store.set(FOCUS_KEY, True)
    controller = make_controller(notifier, store, settings, clock)

    assert controller.start() == Mode.CARING
    assert store.get(DO_NOT_CARE_KEY) is False
    assert store.get(FOCUS_KEY) is False


def test_finished_session_is_not_rescheduled_on_start(store, settings, clock, notifier):
    first = make_controller(notifier, store, settings, clock)
    first.start()
    first.toggle(ToggleType.DO_NOT_CARE, True)

    clock.advance(2500)
    fresh_notifier = FakeNotificationCenter(clock)
    second = make_controller(fresh_notifier, store, settings, clock)

    assert second.start() == Mode.DO_NOT_CARE
    assert fresh_notifier.pending == {}
    snapshot = second.snapshot()
    assert snapshot["is_expired"] is True
    assert snapshot["display_time"] == "00:00"
    assert snapshot["status_text"] == "40-minute session complete - toggle to restart"


def test_permission_prompt_shown_once(store, settings, clock):
    notifier = FakeNotificationCenter(clock, status=AuthorizationStatus.DENIED)
    controller = make_controller(notifier, store, settings, clock)
    prompts = []
    controller.on_permission_prompt.add_listener(lambda message: prompts.append(message))

    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    controller.on_foreground()

    assert controller.permission_denied is True
    assert len(prompts) == 1
    assert notifier.pending == {}


def test_declined_request_prompts(store, settings, clock):
    notifier = FakeNotificationCenter(clock, grant=False)
    controller = make_controller(notifier, store, settings, clock)
    prompts = []
    controller.on_permission_prompt.add_listener(lambda message: prompts.append(message))

    controller.start()

    assert notifier.authorization_requests == 1
    assert len(prompts) == 1


def test_revoked_permission_detected_on_foreground(controller, notifier):
    prompts = []
    controller.on_permission_prompt.add_listener(lambda message: prompts.append(message))
    controller.start()

    notifier.status = AuthorizationStatus.DENIED
    controller.on_foreground()

    assert controller.permission_denied is True
    assert len(prompts) == 1


def _fire_times(notifier):
    return [submitted_at + request.offset_seconds for request, submitted_at in notifier.pending.values()]


def test_foreground_refill_stays_inside_session(controller, notifier, clock):
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    session_end = clock() + 2400
    clock.advance(2300)
    notifier.deliver_due()
    assert len(notifier.pending) == 2

    controller.on_foreground()

    assert sorted(r.offset_seconds for r, _ in notifier.pending.values()) == [1, 41, 81]
    assert all(fire_at <= session_end for fire_at in _fire_times(notifier))
    assert controller.snapshot()["display_time"] == "01:40"

    clock.advance(200)
    notifier.deliver_due()
    assert notifier.pending == {}


def test_repeated_do_not_care_toggle_keeps_session_end(controller, notifier, clock):
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    session_end = clock() + 2400
    clock.advance(2000)

    controller.toggle(ToggleType.DO_NOT_CARE, True)

    assert len(notifier.pending) == 10
    assert all(fire_at <= session_end for fire_at in _fire_times(notifier))
    assert controller.snapshot()["display_time"] == "06:40"


def test_toggle_racing_timer_expiry_keeps_user_choice(settings, clock):
    for _ in range(20):
        notifier = FakeNotificationCenter(clock)
        store = SqliteKeyValueAdapter(":memory:")
        controller = make_controller(notifier, store, settings, clock, auto_care_on_expiry=True)
        controller.start()
        controller.toggle(ToggleType.DO_NOT_CARE, True)
        clock.advance(2400)

        ticker = threading.Thread(target=controller.timer.tick)
        ticker.start()
        controller.toggle(ToggleType.FOCUS, True)
        ticker.join()

        assert controller.mode == Mode.FOCUS
        assert controller.timer.mode == Mode.FOCUS
        assert controller.scheduler.check_pending().count_for(Mode.FOCUS) == 64
        store.close()


def test_foreground_after_expiry_does_not_refill(controller, notifier, clock):
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    clock.advance(2450)
    notifier.deliver_due()

    controller.on_foreground()

    assert controller.mode == Mode.DO_NOT_CARE
    assert notifier.pending == {}


def test_auto_care_on_expiry(store, settings, clock, notifier):
    controller = make_controller(notifier, store, settings, clock, auto_care_on_expiry=True)
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)
    clock.advance(2400)

    controller.on_foreground()

    assert controller.mode == Mode.CARING


def test_timer_expiry_switches_mode_when_enabled(store, settings, clock, notifier):
    controller = make_controller(notifier, store, settings, clock, auto_care_on_expiry=True)
    expired = []
    controller.on_expired.add_listener(lambda mode: expired.append(mode))
    controller.start()
    controller.toggle(ToggleType.DO_NOT_CARE, True)

    clock.advance(2400)
    controller.timer.tick()

    assert expired == [Mode.DO_NOT_CARE]
    assert controller.mode == Mode.CARING


def test_mode_changed_event(controller):
    modes = []
    controller.on_mode_changed.add_listener(lambda mode: modes.append(mode))
    controller.start()
    controller.set_mode("focus")
    controller.toggle("notification", False)

    assert modes == [Mode.CARING, Mode.FOCUS, Mode.CARING]


def test_snapshot_texts(controller, clock):
    controller.start()
    caring = controller.snapshot()
    assert caring["display_label"] == "time spent caring"
    assert caring["status_text"] == "both reminder modes off - caring mode active"

    controller.toggle(ToggleType.DO_NOT_CARE, True)
    dnc = controller.snapshot()
    assert dnc["display_time"] == "40:00"
    assert dnc["display_label"] == "time remaining"
    assert dnc["status_text"] == "focus reminders active (40s intervals for 40 min)"
    assert dnc["pending"] == 60

    controller.toggle(ToggleType.FOCUS, True)
    clock.advance(3725)
    focus = controller.snapshot()
    assert focus["display_time"] == "01:02:05"
    assert focus["display_label"] == "time spent focusing"
    assert focus["status_text"] == "focus reminders active (every 60s until stopped)"
