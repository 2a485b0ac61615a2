import os

from donotcare.config import Settings
from donotcare.core.status import Mode, WAKE_CATEGORY
from donotcare.utils import Event

ENV_NAMES = ("DONOTCARE_DNC_INTERVAL", "DONOTCARE_DNC_DURATION", "DONOTCARE_AUTO_CARE_ON_EXPIRY", "DONOTCARE_PORT")


def test_defaults_match_reminder_layout():
    settings = Settings()
    configs = settings.batch_configs()

    assert configs[Mode.DO_NOT_CARE].batch_size == 60
    assert configs[Mode.DO_NOT_CARE].interval_seconds == 40
    assert configs[Mode.FOCUS].batch_size == 64
    assert configs[Mode.FOCUS].interval_seconds == 60
    assert configs[Mode.CARING].batch_size == 0
    assert configs[Mode.FOCUS].category == WAKE_CATEGORY
    assert settings.countdowns == {Mode.DO_NOT_CARE: 2400}


def test_batch_size_is_capped_by_ceiling():
    settings = Settings(do_not_care_interval=10, focus_batch_size=500)
    assert settings.do_not_care_batch_size == 64
    assert settings.batch_config(Mode.FOCUS).batch_size == 64


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "DONOTCARE_DNC_INTERVAL=30\n"
        "DONOTCARE_DNC_DURATION=600\n"
        "DONOTCARE_AUTO_CARE_ON_EXPIRY=true\n"
        "DONOTCARE_PORT=9001\n"
    )
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)

    try:
        settings = Settings.from_env(str(env_file))
    finally:
        # load_dotenv writes straight into os.environ
        for name in ENV_NAMES:
            os.environ.pop(name, None)

    assert settings.do_not_care_interval == 30
    assert settings.do_not_care_batch_size == 20
    assert settings.auto_care_on_expiry is True
    assert settings.port == 9001


def test_event_keeps_delivering_after_listener_error():
    event = Event()
    seen = []
    failures = []

    def broken(value):
        failures.append(value)
        raise RuntimeError("boom")

    event.add_listener(broken)
    event.add_listener(seen.append)
    event.emit(5)

    assert seen == [5]
    event.remove_listener(broken)
    event.emit(6)
    assert seen == [5, 6]
    assert failures == [5]
