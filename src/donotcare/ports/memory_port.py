from abc import ABC, abstractmethod
from typing import Any


class KeyValuePort(ABC):
    """Port for small device-local settings (mode flags, session start time)."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or ``default`` when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serialisable value under ``key``."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``. Removing a missing key is not an error."""
        pass

    def contains(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel
