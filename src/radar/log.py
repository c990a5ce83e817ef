# Radar - Logging
"""
Logging setup for the radar loggers.

Logging is quiet by default: records below WARNING are dropped until
``set_logging(True)`` is called or a radar module is enabled explicitly with
``enable_module``. The gate applies to every logger behind the root handlers,
so third-party chatter (``httpx``, ``zeroconf``) stays quiet too and only
returns with ``set_logging(True)``. Messages matching a suppressed pattern are
always dropped.
"""

import logging
import threading

ROOT_LOGGER = "radar"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

_lock = threading.Lock()
_enabled = False
_enabled_modules: set[str] = set()
_suppressed_patterns: list[str] = [
    "Failed to send SearchStarted",
    "sending on a closed channel",
]


def set_logging(enabled: bool) -> None:
    global _enabled
    with _lock:
        _enabled = enabled


def is_logging_enabled() -> bool:
    return _enabled


def enable_module(name: str) -> None:
    """Enable verbose output for one area, e.g. ``discovery.mdns``."""
    with _lock:
        _enabled_modules.add(_qualify(name))


def disable_module(name: str) -> None:
    with _lock:
        _enabled_modules.discard(_qualify(name))


def add_suppressed_pattern(pattern: str) -> None:
    with _lock:
        if pattern not in _suppressed_patterns:
            _suppressed_patterns.append(pattern)


def is_module_enabled(logger_name: str) -> bool:
    if _enabled:
        return True
    with _lock:
        modules = set(_enabled_modules)
    return any(logger_name == m or logger_name.startswith(m + ".") for m in modules)


def _qualify(name: str) -> str:
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return name
    return f"{ROOT_LOGGER}.{name}"


class SuppressPatternFilter(logging.Filter):
    """
    Drops known-noisy messages and gates sub-warning records on the enable
    flags. Non-radar loggers never match a module flag, so their INFO and
    DEBUG output only passes while logging is enabled globally.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        with _lock:
            patterns = list(_suppressed_patterns)
        if any(p in message for p in patterns):
            return False
        if record.levelno >= logging.WARNING:
            return True
        return is_module_enabled(record.name)


def configure_logging(verbose: bool = False) -> None:
    """Configure root handlers and attach the radar filter."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)
    set_logging(verbose)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, SuppressPatternFilter) for f in handler.filters):
            handler.addFilter(SuppressPatternFilter())
