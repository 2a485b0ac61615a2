class DoNotCareError(Exception):
    """Base class for reminder engine errors."""
    pass


class PermissionDeniedError(DoNotCareError):
    """Exception raised when notification permission was declined or revoked."""
    pass


class SubmissionFailedError(DoNotCareError):
    """Exception raised when a single reminder request could not be enqueued."""

    def __init__(self, identifier: str, reason: str):
        super().__init__(f"Failed to schedule '{identifier}': {reason}")
        self.identifier = identifier
        self.reason = reason


class CapacityExceededError(DoNotCareError):
    """Exception raised when fewer requests are pending than were scheduled."""
    pass


class StaleStateError(DoNotCareError):
    """Exception raised when persisted session state disagrees with memory."""
    pass
