"""Collection and verification of ids referenced by fields tagged ``aocheck``."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping

from .labels import get_service

TAG_CHECK = "aocheck"
TAG_JSON = "json"


@dataclass
class IDCheck:
    """The ids found under one JSON field name."""

    name: str
    uuids: list[str] = field(default_factory=list)


def search_id_check(value: Any) -> dict[str, dict[str, IDCheck]]:
    """Group string ids in ``value`` by check tag, then by JSON field name.

    Tags are read from dataclass field metadata keys ``aocheck`` and ``json``.
    """
    out: dict[str, dict[str, IDCheck]] = {}
    _walk("", "", value, out)
    return out


def _tag(metadata: Mapping[str, Any], key: str) -> str:
    return metadata.get(key, "").split(",", 1)[0]


def _walk(tag: str, json_name: str, value: Any, out: dict[str, dict[str, IDCheck]]) -> None:
    if value is None:
        return
    if isinstance(value, str):
        if tag:
            checks = out.setdefault(tag, {})
            check = checks.get(json_name)
            if check is None:
                checks[json_name] = IDCheck(name=json_name, uuids=[value])
            else:
                check.uuids.append(value)
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            _walk(_tag(f.metadata, TAG_CHECK), _tag(f.metadata, TAG_JSON), getattr(value, f.name), out)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _walk(tag, json_name, item, out)
    elif isinstance(value, Mapping):
        for item in value.values():
            _walk(tag, json_name, item, out)


def _format_ids(ids: list[str]) -> str:
    return "[" + " ".join(ids) + "]"


def check_ids(ctx: Any, *values: Any) -> None:
    """Raise LookupError if a registered service does not know a referenced id."""
    for name, checks in search_id_check(list(values)).items():
        for check in checks.values():
            if not check.uuids:
                continue
            service = get_service(name)
            if service is None:
                continue
            found = service.get_labels(ctx, *check.uuids)
            if not found:
                raise LookupError(f"{check.name}({_format_ids(check.uuids)}) not found")
            if len(found) != len(check.uuids):
                missing = [i for i in check.uuids if i not in found]
                raise LookupError(f"{check.name}({_format_ids(missing)}) not found")