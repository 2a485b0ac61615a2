import threading
from abc import ABC, abstractmethod
from donotcare.utils.logging_handler import setup_logger
from donotcare.utils import Event

logger = setup_logger(__name__)


class TimeTool(ABC):
    """
    An abstract base class for time-keeping tools driven by a periodic tick.
    It owns a single ticker thread: starting an already running tool is a
    no-op, and restarting always stops the previous thread first, so two
    ticks never overlap.
    """
    def __init__(self, tick_interval: float = 1.0):
        """Initializes the TimeTool with default states and event hooks."""
        self.tick_interval = tick_interval
        self._is_running = False
        self._thread = None
        self._stop_event = threading.Event()

        self.on_tick = Event(f"{self.__class__.__name__}.tick")
        self.on_start = Event(f"{self.__class__.__name__}.start")
        self.on_stop = Event(f"{self.__class__.__name__}.stop")
        self.on_reset = Event(f"{self.__class__.__name__}.reset")

    @property
    def is_running(self):
        """Property that returns True if the ticker thread is active."""
        return self._is_running

    def start(self):
        """Starts the ticker thread."""
        if self._is_running:
            logger.warning(f"{self.__class__.__name__} is already running.")
            return
        self._is_running = True
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop_event,), daemon=True,
            name=f"{self.__class__.__name__.lower()}_ticker"
        )
        self._thread.start()
        self.on_start.emit()
        logger.info(f"{self.__class__.__name__} started.")

    def stop(self):
        """
        Stops the ticker thread.
        Joins the internal thread unless called from the ticker itself.
        """
        if not self._is_running:
            return
        self._is_running = False
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.tick_interval + 0.5)
        self._thread = None
        self.on_stop.emit()
        logger.info(f"{self.__class__.__name__} stopped.")

    def restart(self):
        """Replaces the running ticker with a fresh one."""
        if self._is_running:
            self.stop()
            self.start()

    @abstractmethod
    def tick(self, now=None):
        """Recompute the displayed value. Called once per tick interval."""
        pass

    @abstractmethod
    def get_status(self):
        """
        Abstract method to retrieve the current status of the tool.
        Should return a dictionary containing relevant state data.
        """
        pass

    def _run(self, stop_event: threading.Event):
        self._safe_tick()
        while not stop_event.wait(self.tick_interval):
            self._safe_tick()

    def _safe_tick(self):
        try:
            self.tick()
        except Exception:
            logger.exception(f"{self.__class__.__name__} tick failed")
