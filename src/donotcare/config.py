import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from donotcare.core.models import BatchConfig
from donotcare.core.status import Mode, WAKE_CATEGORY
from donotcare.tools.reminder_tools.messages import MESSAGE_POOLS, TITLES
from donotcare.utils.time_conversions import convert_to_seconds

ENV_FILE_VAR = "DONOTCARE_ENV_FILE"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    max_pending: int = 64
    low_water_mark: int = 5

    # do not care: 40 minute countdown, a reminder every 40 seconds
    do_not_care_interval: float = 40.0
    do_not_care_lead: float = 1.0
    do_not_care_duration: float = float(convert_to_seconds(minutes=40))
    do_not_care_strategy: str = "batch"

    # focus: a reminder every minute until switched off
    focus_interval: float = 60.0
    focus_lead: float = 1.0
    focus_batch_size: int = 64
    focus_strategy: str = "batch"

    auto_care_on_expiry: bool = False
    auto_grant_permission: bool = True
    db_path: str = "donotcare.db"
    host: str = "127.0.0.1"
    port: int = 8000
    tick_interval: float = 1.0

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        env_path = Path(env_file or os.getenv(ENV_FILE_VAR, ".env"))
        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)

        d = cls()
        return cls(
            max_pending=_env_int("DONOTCARE_MAX_PENDING", d.max_pending),
            low_water_mark=_env_int("DONOTCARE_LOW_WATER_MARK", d.low_water_mark),
            do_not_care_interval=_env_float("DONOTCARE_DNC_INTERVAL", d.do_not_care_interval),
            do_not_care_lead=_env_float("DONOTCARE_DNC_LEAD", d.do_not_care_lead),
            do_not_care_duration=_env_float("DONOTCARE_DNC_DURATION", d.do_not_care_duration),
            do_not_care_strategy=os.getenv("DONOTCARE_DNC_STRATEGY", d.do_not_care_strategy),
            focus_interval=_env_float("DONOTCARE_FOCUS_INTERVAL", d.focus_interval),
            focus_lead=_env_float("DONOTCARE_FOCUS_LEAD", d.focus_lead),
            focus_batch_size=_env_int("DONOTCARE_FOCUS_BATCH_SIZE", d.focus_batch_size),
            focus_strategy=os.getenv("DONOTCARE_FOCUS_STRATEGY", d.focus_strategy),
            auto_care_on_expiry=_env_bool("DONOTCARE_AUTO_CARE_ON_EXPIRY", d.auto_care_on_expiry),
            auto_grant_permission=_env_bool("DONOTCARE_AUTO_GRANT", d.auto_grant_permission),
            db_path=os.getenv("DONOTCARE_DB_PATH", d.db_path),
            host=os.getenv("DONOTCARE_HOST", d.host),
            port=_env_int("DONOTCARE_PORT", d.port),
            tick_interval=_env_float("DONOTCARE_TICK_INTERVAL", d.tick_interval),
        )

    @property
    def do_not_care_batch_size(self) -> int:
        # enough reminders to cover the countdown, never more than the queue holds
        return min(math.ceil(self.do_not_care_duration / self.do_not_care_interval), self.max_pending)

    @property
    def countdowns(self) -> Dict[Mode, float]:
        return {Mode.DO_NOT_CARE: self.do_not_care_duration}

    def batch_config(self, mode: Mode) -> BatchConfig:
        if mode == Mode.DO_NOT_CARE:
            return BatchConfig(
                batch_size=self.do_not_care_batch_size,
                interval_seconds=self.do_not_care_interval,
                lead_seconds=self.do_not_care_lead,
                title=TITLES[mode],
                messages=MESSAGE_POOLS[mode],
                category=WAKE_CATEGORY,
                strategy=self.do_not_care_strategy,
                low_water_mark=self.low_water_mark,
            )
        if mode == Mode.FOCUS:
            return BatchConfig(
                batch_size=min(self.focus_batch_size, self.max_pending),
                interval_seconds=self.focus_interval,
                lead_seconds=self.focus_lead,
                title=TITLES[mode],
                messages=MESSAGE_POOLS[mode],
                category=WAKE_CATEGORY,
                strategy=self.focus_strategy,
                low_water_mark=self.low_water_mark,
            )
        return BatchConfig(batch_size=0, interval_seconds=60.0, title=TITLES[mode])

    def batch_configs(self) -> Dict[Mode, BatchConfig]:
        return {mode: self.batch_config(mode) for mode in Mode}
