from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Union

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType
from wren.errors import DeserializationError, SerializationError

DictValue = Union[str, int, float, bool, List["DictValue"], Dict[str, "DictValue"]]


class _ValueTag(enum.IntEnum):
    STR = 0
    INT = 1
    FLOAT = 2
    BOOL = 3
    LIST = 4
    MAP = 5


def _write_value(w: BinaryWriter, value: DictValue) -> None:
    # bool before int, bool is an int subclass
    if isinstance(value, bool):
        w.u8(_ValueTag.BOOL)
        w.bool(value)
    elif isinstance(value, int):
        w.u8(_ValueTag.INT)
        w.i64(value)
    elif isinstance(value, float):
        w.u8(_ValueTag.FLOAT)
        w.f64(value)
    elif isinstance(value, str):
        w.u8(_ValueTag.STR)
        w.str(value)
    elif isinstance(value, (list, tuple)):
        w.u8(_ValueTag.LIST)
        w.u32(len(value))
        for item in value:
            _write_value(w, item)
    elif isinstance(value, dict):
        w.u8(_ValueTag.MAP)
        _write_map(w, value)
    else:
        raise SerializationError(
            f"Unsupported dictionary value of type {type(value).__name__}"
        )


def _write_map(w: BinaryWriter, entries: Dict[str, DictValue]) -> None:
    w.u32(len(entries))
    for key, value in entries.items():
        w.str(key)
        _write_value(w, value)


def _read_value(r: BinaryReader) -> DictValue:
    tag = r.enum(_ValueTag)
    if tag == _ValueTag.STR:
        return r.str()
    if tag == _ValueTag.INT:
        return r.i64()
    if tag == _ValueTag.FLOAT:
        return r.f64()
    if tag == _ValueTag.BOOL:
        return r.bool()
    if tag == _ValueTag.LIST:
        return [_read_value(r) for _ in range(r.u32())]
    if tag == _ValueTag.MAP:
        return _read_map(r)
    raise DeserializationError(f"Unhandled dictionary tag {tag}")


def _read_map(r: BinaryReader) -> Dict[str, DictValue]:
    entries: Dict[str, DictValue] = {}
    for _ in range(r.u32()):
        key = r.str()
        entries[key] = _read_value(r)
    return entries


def _value_size(value: DictValue) -> int:
    if isinstance(value, str):
        return len(value.encode("utf-8"))
    if isinstance(value, (list, tuple)):
        return sum(_value_size(v) for v in value)
    if isinstance(value, dict):
        return sum(len(k.encode("utf-8")) + _value_size(v) for k, v in value.items())
    return 8


@dataclass(frozen=True)
class IRDictionary:
    """Insertion-ordered key/value data, e.g. localisation tables."""

    KIND: ClassVar[AssetType] = AssetType.DICTIONARY

    entries: Dict[str, DictValue] = field(default_factory=dict)

    def __getitem__(self, key: str) -> DictValue:
        return self.entries[key]

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage(ram=_value_size(self.entries))

    def write(self, w: BinaryWriter) -> None:
        _write_map(w, self.entries)

    @classmethod
    def read(cls, r: BinaryReader) -> IRDictionary:
        return cls(entries=_read_map(r))
