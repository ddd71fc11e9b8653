from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType


@dataclass(frozen=True)
class IRBlob:
    KIND: ClassVar[AssetType] = AssetType.BLOB

    data: bytes = b""

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage(ram=len(self.data))

    def write(self, w: BinaryWriter) -> None:
        w.bytes(self.data)

    @classmethod
    def read(cls, r: BinaryReader) -> IRBlob:
        return cls(data=r.bytes())


@dataclass(frozen=True)
class IRUnknown:
    KIND: ClassVar[AssetType] = AssetType.UNKNOWN

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage()

    def write(self, w: BinaryWriter) -> None:
        pass

    @classmethod
    def read(cls, r: BinaryReader) -> IRUnknown:
        return cls()
