from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from donotcare.core.models import ReminderRequest
from donotcare.core.status import AuthorizationStatus


class NotificationPort(ABC):
    """Port for the local notification queue (pending requests, delivered tray, badge).

    Implementations expose two events: ``on_delivered(request)`` when a
    request fires and ``on_action(action_id, request)`` when the user acts on
    a delivered notification.
    """

    @abstractmethod
    def submit(self, request: ReminderRequest) -> None:
        """Enqueue one request. Raises SubmissionFailedError if it is rejected."""
        pass

    @abstractmethod
    def cancel_pending(self, identifiers: Optional[Iterable[str]] = None) -> None:
        """Remove pending requests by identifier, or all of them when None."""
        pass

    @abstractmethod
    def cancel_delivered(self) -> None:
        """Clear every delivered-but-undismissed notification."""
        pass

    @abstractmethod
    def list_pending(self) -> List[ReminderRequest]:
        pass

    @abstractmethod
    def list_delivered(self) -> List[ReminderRequest]:
        pass

    @abstractmethod
    def set_badge_count(self, count: int) -> None:
        pass


class PermissionPort(ABC):
    """Port for the notification authorization API."""

    @abstractmethod
    def request_authorization(self) -> bool:
        """Ask the user for permission. Returns True if granted."""
        pass

    @abstractmethod
    def get_authorization_status(self) -> AuthorizationStatus:
        pass
