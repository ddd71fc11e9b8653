from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Tuple

from wren.assets.ir.texture import PixelFormat, Sampling
from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType


class CubeFace(enum.IntEnum):
    # +X -X +Y -Y +Z -Z
    RIGHT = 0
    LEFT = 1
    TOP = 2
    BOTTOM = 3
    FRONT = 4
    BACK = 5


@dataclass(frozen=True)
class IRTextureCube:
    KIND: ClassVar[AssetType] = AssetType.TEXTURE_CUBE

    faces: Tuple[bytes, ...]
    size: int
    pixel_format: PixelFormat = PixelFormat.RGBA8
    sampling: Sampling = Sampling()

    def __post_init__(self) -> None:
        if len(self.faces) != len(CubeFace):
            raise ValueError(f"Cube map needs 6 faces, got {len(self.faces)}")
        expected = self.size * self.size * self.pixel_format.bytes_per_pixel
        for face, data in zip(CubeFace, self.faces):
            if len(data) != expected:
                raise ValueError(
                    f"Cube face {face.name} needs {expected} bytes, got {len(data)}"
                )

    def face(self, face: CubeFace) -> bytes:
        return self.faces[face]

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage(ram=sum(len(f) for f in self.faces))

    def write(self, w: BinaryWriter) -> None:
        w.u32(self.size)
        w.u8(self.pixel_format)
        self.sampling.write(w)
        for data in self.faces:
            w.bytes(data)

    @classmethod
    def read(cls, r: BinaryReader) -> IRTextureCube:
        size = r.u32()
        pixel_format = r.enum(PixelFormat)
        sampling = Sampling.read(r)
        faces = tuple(r.bytes() for _ in CubeFace)
        return cls(faces=faces, size=size, pixel_format=pixel_format, sampling=sampling)
