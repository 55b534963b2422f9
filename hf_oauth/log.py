"""Logging helpers for hf-oauth.

Every module logs through a child of the ``hf_oauth`` logger
(``hf_oauth.client``, ``hf_oauth.manager``, ...). Token endpoint bodies
are passed through :func:`redact_sensitive_data` before they are logged.
"""

from __future__ import annotations

import logging
import sys

from typing import Any


LOGGER_NAME = "hf_oauth"
REDACTED = "[REDACTED]"

# Any mapping key containing one of these fragments has its value hidden
_SENSITIVE_KEYS = frozenset({"token", "secret", "password", "code", "verifier", "credential"})


class _LoggerHolder:
    """Lazily configured package logger."""

    instance: logging.Logger | None = None


def get_logger() -> logging.Logger:
    """Return the ``hf_oauth`` logger, attaching a stderr handler on first use.

    The logger starts at WARNING so a library consumer only sees problems
    unless they opt in with :func:`set_level` or :func:`enable_debug`.
    """
    if _LoggerHolder.instance is not None:
        return _LoggerHolder.instance

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.setLevel(logging.WARNING)
    if not package_logger.handlers:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s: %(message)s"))
        package_logger.addHandler(stream)

    _LoggerHolder.instance = package_logger
    return package_logger


def set_level(level: int | str) -> None:
    """Change the package log level.

    Parameters
    ----------
    level : int or str
        A ``logging`` constant or its name, case-insensitive (``"debug"``).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    get_logger().setLevel(level)


def enable_debug() -> None:
    """Log token exchanges, refresh decisions and storage calls."""
    set_level(logging.DEBUG)


def redact_sensitive_data(data: Any, max_depth: int = 5) -> Any:
    """Return a copy of ``data`` that is safe to log.

    Dicts are copied with the values of sensitive keys replaced by
    ``"[REDACTED]"``; lists are copied element-wise; anything else is
    returned unchanged. Nesting deeper than ``max_depth`` collapses to
    ``"[MAX_DEPTH]"``.
    """
    if max_depth <= 0:
        return "[MAX_DEPTH]"
    if isinstance(data, dict):
        return {
            key: REDACTED if _is_sensitive(key) else redact_sensitive_data(value, max_depth - 1)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact_sensitive_data(item, max_depth - 1) for item in data]
    return data


def _is_sensitive(key: object) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in _SENSITIVE_KEYS)
