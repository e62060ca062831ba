import re
from dataclasses import dataclass

import pytest

from apicommon.pm3_plugins import (
    AccessConfig,
    Driver,
    EmptyDriver,
    Plugin,
    all_names,
    check_middlewares,
    create,
    create_middleware,
    list_drivers,
    register,
    sort_middlewares,
)


@dataclass
class NamedPlugin:
    name: str


class BrokenDriver:
    def create(self):
        raise OSError("cannot start")


def handler_a(ctx):
    return None


def handler_b(ctx):
    return None


def test_create_returns_plugins_in_requested_order():
    first = NamedPlugin("first")
    second = NamedPlugin("second")
    register("order-first", EmptyDriver(first))
    register("order-second", EmptyDriver(second))
    assert create("order-second", "order-first") == [second, first]


def test_create_ignores_repeated_names():
    plugin = NamedPlugin("once")
    register("repeat-once", EmptyDriver(plugin))
    assert create("repeat-once", "repeat-once") == [plugin]


def test_create_with_unknown_name_raises():
    register("known-one", EmptyDriver(NamedPlugin("known")))
    with pytest.raises(LookupError, match=re.escape("not found plugin:[missing-one]")):
        create("known-one", "missing-one")


def test_create_failure_raises():
    register("broken-one", BrokenDriver())
    with pytest.raises(RuntimeError, match=re.escape("create plugin [broken-one]")):
        create("broken-one")


def test_create_without_names_is_empty():
    assert create() == []


def test_registry_listing():
    driver = EmptyDriver(NamedPlugin("listed"))
    register("listed-one", driver)
    assert "listed-one" in all_names()
    assert driver in list_drivers()


def test_empty_driver():
    plugin = NamedPlugin("p")
    driver = EmptyDriver(plugin)
    assert driver.create() is plugin
    assert driver.access() is None
    assert isinstance(driver, Driver)
    assert isinstance(driver, AccessConfig)
    assert isinstance(plugin, Plugin)


def test_middleware_without_check_matches_everything():
    m = create_middleware(None, handler_a, 1)
    assert m.check("GET", "/any") == (True, [handler_a])


def test_middleware_check_function_filters():
    m = create_middleware(lambda method, path: path.startswith("/api"), handler_a, 1)
    assert m.check("GET", "/api/x") == (True, [handler_a])
    assert m.check("GET", "/static/x") == (False, [])


def test_middleware_without_handler_never_applies():
    m = create_middleware(None, None, 1)
    assert m.check("GET", "/api") == (False, [])


def test_sort_middlewares_orders_by_sort():
    ms = [create_middleware(None, handler_a, s) for s in (3, 1, 2)]
    sort_middlewares(ms)
    sorts = [m.sort for m in ms]
    assert sorts == sorted(sorts)


def test_check_middlewares_collects_in_order():
    late = create_middleware(None, handler_b, 9)
    early = create_middleware(None, handler_a, 1)
    ms = [late, early]
    sort_middlewares(ms)
    assert check_middlewares(ms, "GET", "/x") == [handler_a, handler_b]


def test_check_middlewares_none_when_nothing_applies():
    ms = [create_middleware(lambda method, path: False, handler_a, 1)]
    assert check_middlewares(ms, "GET", "/x") is None