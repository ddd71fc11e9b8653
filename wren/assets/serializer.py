# wren/assets/serializer.py
from __future__ import annotations

import struct
from typing import Callable, List, Optional, TypeVar

from wren.errors import DeserializationError, SerializationError, SizeOverflow

T = TypeVar("T")

U32_MAX = 0xFFFFFFFF


class BinaryWriter:
    """
    Little-endian tagged encoder used for IR, TOC, manifest and cache files.
    Output only depends on the values written, never on the host.
    """

    _u8 = struct.Struct("<B")
    _u16 = struct.Struct("<H")
    _u32 = struct.Struct("<I")
    _u64 = struct.Struct("<Q")
    _i64 = struct.Struct("<q")
    _f32 = struct.Struct("<f")
    _f64 = struct.Struct("<d")

    def __init__(self) -> None:
        self._parts: List[bytes] = []

    def _pack(self, fmt: struct.Struct, value) -> None:
        try:
            self._parts.append(fmt.pack(value))
        except struct.error as e:
            raise SerializationError(f"Cannot encode {value!r}: {e}") from e

    def u8(self, value: int) -> None:
        self._pack(self._u8, value)

    def u16(self, value: int) -> None:
        self._pack(self._u16, value)

    def u32(self, value: int) -> None:
        if value > U32_MAX:
            raise SizeOverflow(f"{value} does not fit in u32")
        self._pack(self._u32, value)

    def u64(self, value: int) -> None:
        self._pack(self._u64, value)

    def i64(self, value: int) -> None:
        self._pack(self._i64, value)

    def f32(self, value: float) -> None:
        self._pack(self._f32, value)

    def f64(self, value: float) -> None:
        self._pack(self._f64, value)

    def bool(self, value: bool) -> None:
        self.u8(1 if value else 0)

    def bytes(self, value: bytes) -> None:
        self.u32(len(value))
        self._parts.append(bytes(value))

    def str(self, value: str) -> None:
        self.bytes(value.encode("utf-8"))

    def optional_str(self, value: Optional[str]) -> None:
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            self.str(value)

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class BinaryReader:
    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = memoryview(data)
        self._pos = offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, n: int) -> memoryview:
        if n > self.remaining:
            raise DeserializationError(
                f"Unexpected end of data: wanted {n} bytes at {self._pos}, "
                f"{self.remaining} left"
            )
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def _unpack(self, fmt: struct.Struct):
        return fmt.unpack(self._take(fmt.size))[0]

    def u8(self) -> int:
        return self._unpack(BinaryWriter._u8)

    def u16(self) -> int:
        return self._unpack(BinaryWriter._u16)

    def u32(self) -> int:
        return self._unpack(BinaryWriter._u32)

    def u64(self) -> int:
        return self._unpack(BinaryWriter._u64)

    def i64(self) -> int:
        return self._unpack(BinaryWriter._i64)

    def f32(self) -> float:
        return self._unpack(BinaryWriter._f32)

    def f64(self) -> float:
        return self._unpack(BinaryWriter._f64)

    def bool(self) -> bool:
        value = self.u8()
        if value > 1:
            raise DeserializationError(f"Invalid bool byte {value}")
        return value == 1

    def bytes(self) -> bytes:
        return bytes(self._take(self.u32()))

    def str(self) -> str:
        raw = self.bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DeserializationError(f"Invalid utf-8 string: {e}") from e

    def optional_str(self) -> Optional[str]:
        tag = self.u8()
        if tag == 0:
            return None
        if tag != 1:
            raise DeserializationError(f"Invalid option tag {tag}")
        return self.str()

    def list(self, item: Callable[["BinaryReader"], T]) -> List[T]:
        return [item(self) for _ in range(self.u32())]

    def enum(self, enum_cls: Callable[[int], T]) -> T:
        raw = self.u8()
        try:
            return enum_cls(raw)
        except ValueError as e:
            raise DeserializationError(
                f"Invalid {getattr(enum_cls, '__name__', 'enum')} value {raw}"
            ) from e

    def expect_end(self) -> None:
        if self.remaining:
            raise DeserializationError(f"{self.remaining} trailing bytes")
