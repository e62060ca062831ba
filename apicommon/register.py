"""Deferred handlers keyed by type: handlers run once a value of that type is published."""

from __future__ import annotations

import threading
from typing import Any, Callable

_lock = threading.Lock()
_handlers: dict[Any, list[Callable[[Any], None]]] = {}
_values: dict[Any, Any] = {}


def _name(kind: Any) -> str:
    return f"{getattr(kind, '__module__', '')}.{getattr(kind, '__qualname__', repr(kind))}"


def _acquire(kind: Any) -> None:
    if not _lock.acquire(blocking=False):
        raise RuntimeError(f"Handler:{_name(kind)} deadlock")


def handle(kind: Any, handler: Callable[[Any], None]) -> None:
    """Run ``handler`` with the value published for ``kind``, now or when it arrives."""
    _acquire(kind)
    try:
        if kind in _values:
            handler(_values[kind])
            return
        _handlers.setdefault(kind, []).append(handler)
    finally:
        _lock.release()


def call(kind: Any, value: Any) -> None:
    """Publish ``value`` for ``kind`` and run every handler waiting for it."""
    _acquire(kind)
    try:
        _values[kind] = value
        pending = _handlers.pop(kind, [])
        for handler in pending:
            handler(value)
    finally:
        _lock.release()