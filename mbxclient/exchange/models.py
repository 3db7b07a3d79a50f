"""Case-sensitive mapping between wire JSON keys and dataclass fields.

Stream payloads use single-letter keys where ``t``/``T``, ``i``/``I`` and
``m``/``M`` name different values, so every field declares its exact key.
"""

from __future__ import annotations

import json
from dataclasses import MISSING, field, fields
from typing import Any, Callable, Mapping, Optional, Type, TypeVar, Union

from ..utils.exceptions import StreamDecodeError

T = TypeVar("T", bound="WireModel")


def wire(
    key: str,
    *,
    default: Any = None,
    default_factory: Any = MISSING,
    model: Optional[Type["WireModel"]] = None,
    many: bool = False,
    load: Optional[Callable[[Any], Any]] = None,
    dump: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Declare a dataclass field bound to wire key ``key``."""
    if model is not None:
        load = (lambda items: [model.from_wire(item) for item in items]) if many else model.from_wire
        dump = (lambda items: [item.to_wire() for item in items]) if many else (lambda item: item.to_wire())
    metadata = {"wire": key, "load": load, "dump": dump}
    if default_factory is not MISSING:
        return field(default_factory=default_factory, metadata=metadata)
    return field(default=default, metadata=metadata)


class WireModel:
    """Mixin for dataclasses whose fields are declared with :func:`wire`."""

    @classmethod
    def from_wire(cls: Type[T], payload: Mapping[str, Any]) -> T:
        if not isinstance(payload, Mapping):
            raise StreamDecodeError(f"{cls.__name__} expects an object, got {type(payload).__name__}", frame=payload)
        kwargs: dict[str, Any] = {}
        for item in fields(cls):  # type: ignore[arg-type]
            key = item.metadata.get("wire")
            if key is None or key not in payload:
                continue
            value = payload[key]
            load = item.metadata.get("load")
            if load is not None and value is not None:
                try:
                    value = load(value)
                except (TypeError, ValueError, IndexError, KeyError) as exc:
                    raise StreamDecodeError(f"bad value for {cls.__name__}.{item.name}: {exc}", frame=payload) from exc
            kwargs[item.name] = value
        return cls(**kwargs)

    def to_wire(self) -> dict[str, Any]:
        """Re-marshal to wire keys. ``None`` fields are omitted."""
        result: dict[str, Any] = {}
        for item in fields(self):  # type: ignore[arg-type]
            key = item.metadata.get("wire")
            if key is None:
                continue
            value = getattr(self, item.name)
            if value is None:
                continue
            dump = item.metadata.get("dump")
            result[key] = dump(value) if dump is not None else value
        return result


def load_json(message: Union[str, bytes]) -> Any:
    """Parse a frame, raising :class:`StreamDecodeError` on invalid JSON."""
    try:
        return json.loads(message)
    except ValueError as exc:
        raise StreamDecodeError(f"invalid JSON frame: {exc}", frame=message) from exc


__all__ = ["WireModel", "load_json", "wire"]
