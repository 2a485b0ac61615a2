import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

from donotcare.utils.logging_handler import setup_logger
from donotcare.utils.event import Event

__all__ = ["BASE_DIR", "setup_logger", "Event"]
