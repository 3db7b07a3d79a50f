"""Insertion-ordered request parameters and their URL encoding.

The encoded form of a :class:`Params` instance is exactly what gets signed
and exactly what gets sent, so the layout must be deterministic:

* keys keep the position of their first insertion; re-setting a key
  replaces its value in place (last write wins);
* integers are base-10, floats use the shortest round-trip decimal with
  no exponent, booleans are ``true``/``false``;
* a list of strings becomes a compact JSON array (``["A","B"]``), other
  records become compact JSON;
* the result is ``application/x-www-form-urlencoded``.
"""

from __future__ import annotations

import dataclasses
import json
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple, Union
from urllib.parse import quote_plus

from ..utils.converters import format_bool, format_decimal, format_float

ParamValue = Any
ParamSource = Union[Mapping[str, ParamValue], Iterable[Tuple[str, ParamValue]], None]


class Params(MutableMapping[str, ParamValue]):
    """Ordered parameter map with explicit first-insertion ordering."""

    __slots__ = ("_keys", "_values")

    def __init__(self, source: ParamSource = None, **kwargs: ParamValue) -> None:
        self._keys: List[str] = []
        self._values: Dict[str, ParamValue] = {}
        if source is not None:
            self.update(source)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, key: str) -> ParamValue:
        return self._values[key]

    def __setitem__(self, key: str, value: ParamValue) -> None:
        if key not in self._values:
            self._keys.append(key)
        self._values[key] = value

    def __delitem__(self, key: str) -> None:
        del self._values[key]
        self._keys.remove(key)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        items = ", ".join(f"{key!r}: {self._values[key]!r}" for key in self._keys)
        return f"Params({{{items}}})"

    def set(self, key: str, value: ParamValue) -> "Params":
        """Set ``key`` and return ``self`` for chaining."""
        self[key] = value
        return self

    def set_optional(self, key: str, value: Optional[ParamValue]) -> "Params":
        """Set ``key`` only when ``value`` is not ``None``."""
        if value is not None:
            self[key] = value
        return self

    def copy(self) -> "Params":
        return Params(self.items())

    def encode(self) -> str:
        return encode_params(self)


def format_value(value: ParamValue) -> str:
    """Format a single parameter value as its unescaped string form."""
    if isinstance(value, bool):
        return format_bool(value)
    if isinstance(value, Enum):
        return format_value(value.value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, Decimal):
        return format_decimal(value)
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, (list, tuple)):
        return json.dumps(list(value), separators=(",", ":"), ensure_ascii=False)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return json.dumps(dataclasses.asdict(value), separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, Mapping):
        return json.dumps(dict(value), separators=(",", ":"), ensure_ascii=False)
    raise TypeError(f"unsupported parameter type: {type(value).__name__}")


def encode_params(params: ParamSource) -> str:
    """URL-encode parameters preserving insertion order."""
    if params is None:
        return ""
    items = params.items() if isinstance(params, Mapping) else params
    return "&".join(
        f"{quote_plus(str(key))}={quote_plus(format_value(value))}" for key, value in items
    )


__all__ = ["ParamValue", "Params", "encode_params", "format_value"]
