"""
Signal name parsing for process reloads.
"""

import signal
from typing import Dict

from shared.errors import ConfigError

_SIGNAL_NAMES = ("SIGHUP", "SIGKILL", "SIGUSR1", "SIGUSR2", "SIGTERM", "SIGINT")

# Only signals defined on this platform are offered
SUPPORTED_SIGNALS: Dict[str, signal.Signals] = {
    name: getattr(signal, name) for name in _SIGNAL_NAMES if hasattr(signal, name)
}


def parse_signal(name: str) -> signal.Signals:
    """Resolve ``HUP``, ``sighup`` or ``SIGHUP`` to a signal."""
    key = str(name).strip().upper()
    if not key.startswith("SIG"):
        key = f"SIG{key}"

    try:
        return SUPPORTED_SIGNALS[key]
    except KeyError:
        raise ConfigError(f"unsupported signal: {name}") from None


def signal_name(sig: signal.Signals) -> str:
    """Return the canonical name of a supported signal."""
    for name, value in SUPPORTED_SIGNALS.items():
        if value == sig:
            return name
    return "unknown signal"
