"""Registry of request paths that a named check should skip."""

from __future__ import annotations

import threading

_lock = threading.RLock()
_ignore_paths: dict[str, dict[str, set[str]]] = {}


def ignore_path(name: str, method: str, path: str) -> None:
    """Mark ``method path`` as ignored for ``name``; method ``*`` matches any."""
    with _lock:
        _ignore_paths.setdefault(name, {}).setdefault(method, set()).add(path)


def _is_ignored(name: str, method: str, path: str) -> bool:
    return path in _ignore_paths.get(name, {}).get(method, ())


def is_ignore_path(name: str, method: str, path: str) -> bool:
    """Whether ``method path`` is ignored for ``name``."""
    with _lock:
        if _is_ignored(name, method, path):
            return True
        if method != "*":
            return _is_ignored(name, "*", path)
        return False