from .dispatch import Dispatcher, EventLoop, TkDispatcher
from .logging_utils import configure_logging, parse_level

__all__ = ["Dispatcher", "EventLoop", "TkDispatcher", "configure_logging", "parse_level"]
