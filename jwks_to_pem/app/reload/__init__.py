"""
Reload triggers: process signals, HTTP calls and Unix socket writes.
"""

from .reloaders import (
    HTTPReloader,
    ProcessReloader,
    Reloader,
    UnixSocketReloader,
    reloader_from_config,
)
from .signals import SUPPORTED_SIGNALS, parse_signal, signal_name

__all__ = [
    "HTTPReloader",
    "ProcessReloader",
    "Reloader",
    "UnixSocketReloader",
    "reloader_from_config",
    "SUPPORTED_SIGNALS",
    "parse_signal",
    "signal_name",
]
