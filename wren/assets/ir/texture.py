from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType


class _ParseMixin:
    @classmethod
    def parse(cls, name: str):
        wanted = name.replace("_", "").replace("-", "").lower()
        for member in cls:  # type: ignore[attr-defined]
            if member.name.replace("_", "").lower() == wanted:
                return member
        raise ValueError(f"Unknown {cls.__name__}: {name}")


class TextureType(_ParseMixin, enum.IntEnum):
    TEXTURE_1D = 0
    TEXTURE_2D = 1
    TEXTURE_3D = 2
    TEXTURE_2D_ARRAY = 3


class PixelFormat(_ParseMixin, enum.IntEnum):
    RGBA8 = 0
    RGB8 = 1
    RG8 = 2
    R8 = 3
    RGBA16 = 4
    R16 = 5
    R32F = 6

    @property
    def bytes_per_pixel(self) -> int:
        return _BYTES_PER_PIXEL[self]


_BYTES_PER_PIXEL = {
    PixelFormat.RGBA8: 4,
    PixelFormat.RGB8: 3,
    PixelFormat.RG8: 2,
    PixelFormat.R8: 1,
    PixelFormat.RGBA16: 8,
    PixelFormat.R16: 2,
    PixelFormat.R32F: 4,
}


class TextureFilter(_ParseMixin, enum.IntEnum):
    NEAREST = 0
    LINEAR = 1


class TextureWrap(_ParseMixin, enum.IntEnum):
    CLAMP_TO_EDGE = 0
    CLAMP_TO_BORDER = 1
    REPEAT = 2
    MIRRORED_REPEAT = 3


@dataclass(frozen=True)
class Sampling:
    """Sampler state shared by 2D textures and cube maps."""

    use_mipmaps: bool = False
    min_filter: TextureFilter = TextureFilter.NEAREST
    mag_filter: TextureFilter = TextureFilter.NEAREST
    wrap_s: TextureWrap = TextureWrap.CLAMP_TO_EDGE
    wrap_t: TextureWrap = TextureWrap.CLAMP_TO_EDGE
    wrap_r: TextureWrap = TextureWrap.CLAMP_TO_EDGE

    def write(self, w: BinaryWriter) -> None:
        w.bool(self.use_mipmaps)
        w.u8(self.min_filter)
        w.u8(self.mag_filter)
        w.u8(self.wrap_s)
        w.u8(self.wrap_t)
        w.u8(self.wrap_r)

    @classmethod
    def read(cls, r: BinaryReader) -> Sampling:
        return cls(
            use_mipmaps=r.bool(),
            min_filter=r.enum(TextureFilter),
            mag_filter=r.enum(TextureFilter),
            wrap_s=r.enum(TextureWrap),
            wrap_t=r.enum(TextureWrap),
            wrap_r=r.enum(TextureWrap),
        )


@dataclass(frozen=True)
class IRTexture:
    """Tightly packed pixel rows, first row at the top."""

    KIND: ClassVar[AssetType] = AssetType.TEXTURE

    data: bytes
    width: int
    height: int = 1
    depth: int = 1
    texture_type: TextureType = TextureType.TEXTURE_2D
    pixel_format: PixelFormat = PixelFormat.RGBA8
    sampling: Sampling = Sampling()

    def __post_init__(self) -> None:
        expected = (
            self.width * self.height * self.depth * self.pixel_format.bytes_per_pixel
        )
        if len(self.data) != expected:
            raise ValueError(
                f"Texture {self.width}x{self.height}x{self.depth} "
                f"{self.pixel_format.name} needs {expected} bytes, "
                f"got {len(self.data)}"
            )

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage(ram=len(self.data))

    def write(self, w: BinaryWriter) -> None:
        w.u8(self.texture_type)
        w.u32(self.width)
        w.u32(self.height)
        w.u32(self.depth)
        w.u8(self.pixel_format)
        self.sampling.write(w)
        w.bytes(self.data)

    @classmethod
    def read(cls, r: BinaryReader) -> IRTexture:
        texture_type = r.enum(TextureType)
        width = r.u32()
        height = r.u32()
        depth = r.u32()
        pixel_format = r.enum(PixelFormat)
        sampling = Sampling.read(r)
        data = r.bytes()
        return cls(
            data=data,
            width=width,
            height=height,
            depth=depth,
            texture_type=texture_type,
            pixel_format=pixel_format,
            sampling=sampling,
        )
