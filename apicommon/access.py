"""Access definitions per group, the permits derived from them, and roles."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

from . import permit as _permit

_log = logging.getLogger(__name__)

_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})


@dataclass
class Access:
    """One access entry; leaves carry APIs, inner nodes carry children."""

    name: str = ""
    cname: str = ""
    value: str = ""
    apis: list[str] | None = None
    dependents: list[str] | None = None
    children: list[Access] | None = None
    guest_allow: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Access:
        """Build an entry from its YAML/JSON form."""
        children = data.get("children")
        return cls(
            name=data.get("name", ""),
            cname=data.get("cname", ""),
            value=data.get("value", ""),
            apis=data.get("apis"),
            dependents=data.get("dependents"),
            children=None if children is None else [cls.from_dict(c) for c in children],
            guest_allow=bool(data.get("guest_allow", False)),
        )


@dataclass
class Template:
    """The shape of an access tree, without its APIs."""

    name: str = ""
    cname: str = ""
    value: str = ""
    children: list[Template] = field(default_factory=list)
    dependents: list[str] | None = None


@dataclass
class Role:
    name: str = ""
    cname: str = ""
    permits: list[str] | None = None
    supper: bool = False
    default: bool = False
    dependents: list[str] | None = None


@dataclass
class _Detail:
    guest_allow: bool = False
    apis: list[str] = field(default_factory=list)


def format_api(api: str) -> str:
    """Normalise ``METHOD:path``; only GET, POST, PUT and DELETE are accepted."""
    index = api.find(":")
    if index < 0:
        raise ValueError(f"api {api} format error")
    method = api[:index].upper().strip()
    if method not in _METHODS:
        raise ValueError(f"api {api} format error")
    path = api[index + 1:].strip()
    return f"{method}:{path}"


def format_group(group: str) -> str:
    """Lower-case the group and replace dashes and inner dots with underscores."""
    group = group.lower().strip().strip(".")
    return group.replace("-", "_").replace(".", "_")


def _format_access(accesses: Iterable[Access]) -> tuple[dict[str, _Detail], list[Template]]:
    result: dict[str, _Detail] = {}
    templates: list[Template] = []
    for a in accesses:
        template = Template(name=a.name, cname=a.cname, value=a.value, dependents=a.dependents)
        if a.children is not None:
            child_result, child_templates = _format_access(a.children)
            for key, detail in child_result.items():
                result[f"{a.value}.{key}"] = detail
            template.children = child_templates
        else:
            apis: list[str] = []
            for api in a.apis or ():
                try:
                    apis.append(format_api(api))
                except ValueError as exc:
                    _log.error("%s", exc)
            result[a.value] = _Detail(guest_allow=a.guest_allow, apis=apis)
        templates.append(template)
    return result, templates


class PermitAccess:
    """Permits of one group: which APIs each access key grants."""

    def __init__(self, group: str, accesses: Iterable[Access] = ()) -> None:
        self.group = group
        self._permits: dict[str, list[str]] = {}
        self._access: dict[str, str] = {}
        self.guest_access: list[str] = []
        self.template: list[Template] = []
        self.add(accesses)

    def valid(self, access: str) -> None:
        """Raise KeyError unless ``access`` is a known API of this group."""
        if access not in self._access:
            raise KeyError(f"permitAccess {access} not found")

    def add(self, accesses: Iterable[Access]) -> None:
        result, templates = _format_access(accesses)
        guests: list[str] = []
        for key, detail in result.items():
            full_key = f"{self.group}.{key}"
            self._permits[full_key] = list(detail.apis)
            for api in detail.apis:
                self._access[api] = full_key
            if detail.guest_allow:
                guests.append(full_key)
            _permit.add_permit_rule(full_key, *detail.apis)
        self.template = templates
        self.guest_access = guests

    def get_permits(self, access: str) -> list[str]:
        """The APIs granted by ``access``; KeyError if it is unknown."""
        try:
            return list(self._permits[access])
        except KeyError:
            raise KeyError(f"permitAccess {access} not found") from None

    def access_keys(self) -> list[str]:
        return list(self._permits)


_lock = threading.RLock()
_access: dict[str, list[Access]] = {}
_permits: dict[str, PermitAccess] = {}
_roles: dict[str, list[Role]] = {}


def all_access() -> dict[str, list[Access]]:
    with _lock:
        return {group: list(items) for group, items in _access.items()}


def get_access(name: str) -> list[Access] | None:
    with _lock:
        items = _access.get(name)
        return None if items is None else list(items)


def add_access(group: str, accesses: Iterable[Access]) -> None:
    """Add accesses to ``group``, prefixing their names with the group."""
    group = format_group(group)
    prefix = f"{group}."
    normalised: list[Access] = []
    for a in accesses:
        name = a.name.lower()
        if not name.startswith(prefix):
            name = prefix + name
        normalised.append(replace(a, name=name))
    permit_access = PermitAccess(group, normalised)
    with _lock:
        _access.setdefault(group, []).extend(normalised)
        _permits[group] = permit_access


def get_permit(group: str) -> PermitAccess | None:
    with _lock:
        return _permits.get(group)


def guest_access(group: str) -> list[str] | None:
    """Access keys of ``group`` open to guests, or None for an unknown group."""
    p = get_permit(group)
    if p is None:
        return None
    return list(p.guest_access)


def role_add(roles: Mapping[str, list[Role]]) -> None:
    with _lock:
        for group, items in roles.items():
            _roles[group] = list(items)


def roles() -> dict[str, list[Role]]:
    with _lock:
        return {group: list(items) for group, items in _roles.items()}