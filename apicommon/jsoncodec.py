"""A JSON codec bound to one value, usable as both text and binary form."""

from __future__ import annotations

import json
from typing import Any


class JsonCodec:
    """Encodes and decodes its ``value`` as compact JSON."""

    def __init__(self, value: Any = None) -> None:
        self.value = value

    def marshal_json(self) -> bytes:
        return json.dumps(self.value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def unmarshal_json(self, data: bytes | str) -> None:
        """Decode ``data`` into ``value``; objects merge into an existing dict."""
        decoded = json.loads(data)
        if isinstance(self.value, dict) and isinstance(decoded, dict):
            self.value.update(decoded)
        else:
            self.value = decoded

    def marshal_binary(self) -> bytes:
        return self.marshal_json()

    def unmarshal_binary(self, data: bytes | str) -> None:
        self.unmarshal_json(data)