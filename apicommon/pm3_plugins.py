"""Plugin drivers, their optional capabilities, and route middlewares."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, runtime_checkable

from .pm3_api import Api, Handler


@runtime_checkable
class Plugin(Protocol):
    name: str


@runtime_checkable
class Driver(Protocol):
    def create(self) -> Plugin:
        ...


@runtime_checkable
class AccessConfig(Protocol):
    def access(self) -> Mapping[str, list[str]] | None:
        ...


@runtime_checkable
class PluginApis(Protocol):
    def apis(self) -> list[Api]:
        ...


@runtime_checkable
class PluginMiddleware(Protocol):
    def middlewares(self) -> list[Middleware]:
        ...


@runtime_checkable
class FrontendFilesProvider(Protocol):
    def files(self) -> list[FrontendFiles]:
        ...


@runtime_checkable
class Middleware(Protocol):
    sort: int

    def check(self, method: str, path: str) -> tuple[bool, list[Handler]]:
        ...


@dataclass
class SimpleMiddleware:
    """Runs ``handler`` for every route that ``check_func`` accepts (all, if None)."""

    check_func: Callable[[str, str], bool] | None
    handler: Handler | None
    sort: int = 0

    def check(self, method: str, path: str) -> tuple[bool, list[Handler]]:
        if self.handler is None:
            return False, []
        if self.check_func is None or self.check_func(method, path):
            return True, [self.handler]
        return False, []


@dataclass
class FrontendFiles:
    """Static files under ``directory`` served at the URL prefix ``path``."""

    path: str
    directory: str


@dataclass
class ContentHandler:
    path: str
    handler: Handler


@dataclass
class EmptyDriver:
    """A driver that hands out an already built plugin."""

    plugin: Any

    def create(self) -> Any:
        return self.plugin

    def access(self) -> Mapping[str, list[str]] | None:
        return None


def sort_middlewares(middlewares: list[Any]) -> None:
    """Order ``middlewares`` in place by ascending ``sort``."""
    middlewares.sort(key=lambda m: m.sort)


def check_middlewares(middlewares: list[Any], method: str, path: str) -> list[Handler] | None:
    """The handlers of every middleware that applies, or None if none does."""
    handlers: list[Handler] = []
    for middleware in middlewares:
        ok, found = middleware.check(method, path)
        if ok:
            handlers.extend(found)
    return handlers or None


def create_middleware(
    check: Callable[[str, str], bool] | None, handler: Handler | None, sort: int
) -> SimpleMiddleware:
    return SimpleMiddleware(check, handler, sort)


_lock = threading.Lock()
_drivers: dict[str, Any] = {}


def register(name: str, driver: Any) -> None:
    with _lock:
        _drivers[name] = driver


def list_drivers() -> list[Any]:
    with _lock:
        return list(_drivers.values())


def all_names() -> list[str]:
    with _lock:
        return list(_drivers)


def create(*names: str) -> list[Any]:
    """Create one plugin per distinct name; unknown names raise LookupError."""
    with _lock:
        chosen = {n: _drivers.get(n) for n in names}
    missing = [n for n, d in chosen.items() if d is None]
    if missing:
        raise LookupError(f"not found plugin:[{' '.join(missing)}]")
    plugins: list[Any] = []
    for name, driver in chosen.items():
        try:
            plugins.append(driver.create())
        except Exception as exc:  # a driver may fail in any way
            raise RuntimeError(f"create plugin [{name}]") from exc
    return plugins