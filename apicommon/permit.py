"""Path-to-access permission rules and per-group domain handlers."""

from __future__ import annotations

import threading
from typing import Any, Callable

_lock = threading.RLock()
_permit_define: dict[str, dict[str, list[str]]] = {}
_domain_handlers: dict[str, Callable[..., Any]] = {}


def read_path(path: str) -> tuple[str, str]:
    """Split ``METHOD:path``; a bare path means GET."""
    parts = path.split(":", 1)
    if len(parts) == 1:
        return "GET", parts[0]
    return parts[0].upper(), parts[1]


def format_path(method: str, path: str) -> str:
    return method.upper() + ":" + "/" + path.lstrip("/")


def read_access_key(access: str) -> tuple[str, str]:
    """Split ``group.access``; keys without a dot belong to group ``unknown``."""
    parts = access.split(".", 1)
    if len(parts) != 2:
        return "unknown", access
    return parts[0], parts[1]


def format_access(group: str, access: str) -> str:
    return group + "." + access


def add_permit_rule(access: str, *paths: str) -> None:
    """Require ``access`` for each of ``paths`` (``METHOD:path`` form)."""
    group, _ = read_access_key(access)
    with _lock:
        for p in paths:
            method, path = read_path(p)
            key = format_path(method, path)
            _permit_define.setdefault(key, {}).setdefault(group, []).append(access)


def get_path_rule(method: str, path: str) -> dict[str, list[str]] | None:
    """Accesses by group required for a request, or None if the path has no rule."""
    with _lock:
        rule = _permit_define.get(format_path(method, path))
        if rule is None:
            return None
        return {group: list(accesses) for group, accesses in rule.items()}


def all_rules() -> dict[str, dict[str, list[str]]]:
    with _lock:
        return {
            path: {group: list(accesses) for group, accesses in rule.items()}
            for path, rule in _permit_define.items()
        }


def add_domain_handler(group: str, handler: Callable[..., Any]) -> None:
    """Register the domain handler of ``group``; each group has at most one."""
    with _lock:
        if group in _domain_handlers:
            raise ValueError("domain handler already exists:" + group)
        _domain_handlers[group] = handler


def select_domain(group: str) -> Callable[..., Any] | None:
    with _lock:
        return _domain_handlers.get(group)