import asyncio
import inspect
import threading
from typing import Callable, List, Optional

from donotcare.utils.logging_handler import setup_logger

logger = setup_logger(__name__)


class Event:
    """Named observer channel, safe to emit from the ticker and scheduler threads.

    Listeners run in registration order on the emitting thread. A listener
    that raises is logged and skipped. A listener returning a coroutine has
    it run on ``loop``; without a loop the coroutine is closed and logged.
    """

    def __init__(self, name: str = "event", loop: Optional[asyncio.AbstractEventLoop] = None):
        self.name = name
        self.loop = loop
        self._listeners: List[Callable] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: Callable):
        if not callable(listener):
            raise ValueError("Listener must be callable")
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: Callable):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(self, *args, **kwargs):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                result = listener(*args, **kwargs)
            except Exception:
                logger.exception(f"Listener {getattr(listener, '__qualname__', listener)!s} failed on '{self.name}'")
                continue
            if inspect.iscoroutine(result):
                self._schedule(result)

    def _schedule(self, coro):
        if self.loop is None or self.loop.is_closed():
            coro.close()
            logger.error(f"Async listener on '{self.name}' needs a running event loop")
            return
        asyncio.run_coroutine_threadsafe(self._safe_task(coro), self.loop)

    async def _safe_task(self, coro):
        try:
            await coro
        except Exception:
            logger.exception(f"Async listener on '{self.name}' failed")
