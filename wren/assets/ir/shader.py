from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Tuple

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType


class ShaderSourceKind(enum.IntEnum):
    FRAGMENT = 0
    GEOMETRY = 1
    VERTEX = 2
    COMPUTE = 3
    TESSELLATION_CONTROL = 4

    @classmethod
    def parse(cls, name: str) -> ShaderSourceKind:
        wanted = name.replace("_", "").lower()
        for member in cls:
            if member.name.replace("_", "").lower() == wanted:
                return member
        raise ValueError(f"Unknown shader source kind: {name}")


@dataclass(frozen=True)
class IRShader:
    KIND: ClassVar[AssetType] = AssetType.SHADER

    sources: Dict[ShaderSourceKind, bytes] = field(default_factory=dict)
    compile_options: Tuple[str, ...] = ()

    def memory_usage(self) -> AssetMemoryUsage:
        ram = sum(len(src) for src in self.sources.values())
        ram += sum(len(opt.encode("utf-8")) for opt in self.compile_options)
        return AssetMemoryUsage(ram=ram)

    def write(self, w: BinaryWriter) -> None:
        w.u32(len(self.compile_options))
        for option in self.compile_options:
            w.str(option)
        w.u32(len(self.sources))
        for kind in sorted(self.sources):
            w.u8(kind)
            w.bytes(self.sources[kind])

    @classmethod
    def read(cls, r: BinaryReader) -> IRShader:
        options = tuple(r.list(BinaryReader.str))
        sources: Dict[ShaderSourceKind, bytes] = {}
        for _ in range(r.u32()):
            kind = r.enum(ShaderSourceKind)
            sources[kind] = r.bytes()
        return cls(sources=sources, compile_options=options)
