"""Assign a value to string fields whose ``aovalue`` tag matches a prefix."""

from __future__ import annotations

import dataclasses
from typing import Any

TAG_AUTO_VALUE = "aovalue"


def auto(tag_value: str, value: str, target: Any) -> None:
    """Set ``value`` on every string field of ``target`` tagged with ``tag_value``.

    Matching is a case-insensitive prefix test of the field's ``aovalue``
    metadata; untagged dataclass fields are searched recursively.
    """
    _assign(tag_value.upper(), value, target)


def _assign(tag_value: str, value: str, target: Any) -> None:
    if target is None or isinstance(target, type) or not dataclasses.is_dataclass(target):
        return
    for f in dataclasses.fields(target):
        current = getattr(target, f.name)
        if f.metadata.get(TAG_AUTO_VALUE, "").upper().startswith(tag_value):
            if isinstance(current, str):
                setattr(target, f.name, value)
            continue
        _assign(tag_value, value, current)