# donotcare/core/status.py
from enum import Enum


class Mode(Enum):
    CARING = "caring"
    DO_NOT_CARE = "do_not_care"
    FOCUS = "focus"


class AuthorizationStatus(Enum):
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"
    AUTHORIZED = "authorized"


class ToggleType(Enum):
    DO_NOT_CARE = "do_not_care"
    FOCUS = "focus"
    NOTIFICATION = "notification"


# Notification category and its actions.
WAKE_CATEGORY = "WAKE_REMINDER"
CARE_ACTION = "CARE_ACTION"
DISMISS_ACTION = "DISMISS_ACTION"
DEFAULT_ACTION = "DEFAULT_ACTION"
