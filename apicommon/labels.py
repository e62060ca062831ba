"""Id labels inside data objects, filled in with display names by registered services."""

from __future__ import annotations

import dataclasses
import json
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol

UNKNOWN_OPERATOR = "unknown"
TAG_AUTO_LABEL = "aolabel"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class Label:
    """An id whose display name is filled in later."""

    id: str
    name: str = ""

    def apply_names(self, names: Mapping[str, str]) -> None:
        """Take the name for this id from ``names``, or mark it unknown."""
        self.name = names.get(self.id, UNKNOWN_OPERATOR)


@dataclass(frozen=True)
class TimeLabel:
    """A timestamp that serialises as ``YYYY-MM-DD HH:MM:SS``."""

    value: datetime

    def to_json(self) -> str:
        return json.dumps(self.value.strftime(TIME_FORMAT))


class CompleteService(Protocol):
    """Looks up display names for a batch of ids."""

    def get_labels(self, ctx: Any, *ids: str) -> Mapping[str, str] | None:
        ...


_lock = threading.Lock()
_services: dict[str, CompleteService] = {}


def label(label_id: str) -> Label:
    return Label(label_id)


def optional_label(label_id: str) -> Label | None:
    """A label for ``label_id``, or None when the id is empty."""
    return Label(label_id) if label_id else None


def label_list(ids: Iterable[str]) -> list[Label] | None:
    """Labels for ``ids``, or None when there are none."""
    labels = [Label(i) for i in ids]
    return labels or None


def register_service(name: str, service: CompleteService) -> None:
    with _lock:
        _services[name] = service


def get_service(name: str) -> CompleteService | None:
    with _lock:
        return _services.get(name)


def collect_labels(value: Any) -> dict[str, list[Label]]:
    """Find every Label in ``value`` that sits under a field tagged ``aolabel``.

    Tags are read from dataclass field metadata; lists, tuples and mapping
    values inherit the tag of the field that holds them.
    """
    out: dict[str, list[Label]] = {}
    _walk("", value, out)
    return out


def _walk(tag: str, value: Any, out: dict[str, list[Label]]) -> None:
    if value is None:
        return
    if isinstance(value, Label):
        if tag:
            out.setdefault(tag, []).append(value)
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            field_tag = f.metadata.get(TAG_AUTO_LABEL, "").split(",", 1)[0]
            _walk(field_tag, getattr(value, f.name), out)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _walk(tag, item, out)
    elif isinstance(value, Mapping):
        for item in value.values():
            _walk(tag, item, out)


def _unique_ids(labels: Iterable[Label]) -> list[str]:
    return list(dict.fromkeys(lb.id for lb in labels))


def complete_labels(ctx: Any, *values: Any) -> None:
    """Fill in the names of all tagged labels in ``values`` via their services."""
    for name, labels in collect_labels(list(values)).items():
        service = get_service(name)
        names: Mapping[str, str] = {}
        if service is not None:
            names = service.get_labels(ctx, *_unique_ids(labels)) or {}
        for lb in labels:
            lb.apply_names(names)