# wren/assets/types.py
from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import NewType, Tuple

from wren.assets.serializer import BinaryReader, BinaryWriter

AssetID = NewType("AssetID", str)

CHECKSUM_SIZE = 16


class AssetType(enum.IntEnum):
    UNKNOWN = 0
    SHADER = 1
    AUDIO = 2
    TEXTURE = 3
    NOTES = 4
    MESH = 5
    MATERIAL = 6
    BLOB = 7
    DICTIONARY = 8
    TEXTURE_CUBE = 9

    @classmethod
    def parse(cls, name: str) -> AssetType:
        """Accepts "TextureCube", "texture_cube" or "TEXTURE_CUBE"."""
        wanted = name.replace("_", "").replace("-", "").lower()
        for member in cls:
            if member.name.replace("_", "").lower() == wanted:
                return member
        raise ValueError(f"Unknown asset type: {name}")


@dataclass(frozen=True)
class AssetChecksum:
    digest: bytes = bytes(CHECKSUM_SIZE)

    def __post_init__(self) -> None:
        if len(self.digest) != CHECKSUM_SIZE:
            raise ValueError(
                f"Checksum must be {CHECKSUM_SIZE} bytes, got {len(self.digest)}"
            )

    @classmethod
    def from_bytes(cls, data: bytes) -> AssetChecksum:
        """Truncate or zero-pad a digest to the checksum size."""
        return cls(bytes(data[:CHECKSUM_SIZE]).ljust(CHECKSUM_SIZE, b"\0"))

    def hex(self) -> str:
        return self.digest.hex()

    def __bytes__(self) -> bytes:
        return self.digest


@dataclass(frozen=True)
class AssetMemoryUsage:
    ram: int = 0
    vram: int = 0

    def __add__(self, other: AssetMemoryUsage) -> AssetMemoryUsage:
        return AssetMemoryUsage(self.ram + other.ram, self.vram + other.vram)


@dataclass(frozen=True)
class AssetHeader:
    """
    Immutable description of one asset. Built by the packager and carried
    through the manifest to the runtime unchanged.
    """

    id: AssetID
    asset_type: AssetType = AssetType.UNKNOWN
    tags: Tuple[str, ...] = ()
    checksum: AssetChecksum = field(default_factory=AssetChecksum)
    dependencies: Tuple[AssetID, ...] = ()
    author: str | None = None
    license: str | None = None

    def __post_init__(self) -> None:
        # ordered, without duplicates
        object.__setattr__(self, "tags", tuple(dict.fromkeys(self.tags)))
        object.__setattr__(
            self, "dependencies", tuple(dict.fromkeys(self.dependencies))
        )

    def with_checksum(self, checksum: AssetChecksum) -> AssetHeader:
        return replace(self, checksum=checksum)

    def write(self, w: BinaryWriter) -> None:
        w.str(self.id)
        w.u8(self.asset_type)
        w.u32(len(self.tags))
        for tag in self.tags:
            w.str(tag)
        w.bytes(self.checksum.digest)
        w.u32(len(self.dependencies))
        for dep in self.dependencies:
            w.str(dep)
        w.optional_str(self.author)
        w.optional_str(self.license)

    @classmethod
    def read(cls, r: BinaryReader) -> AssetHeader:
        asset_id = AssetID(r.str())
        asset_type = r.enum(AssetType)
        tags = tuple(r.list(BinaryReader.str))
        digest = r.bytes()
        dependencies = tuple(AssetID(d) for d in r.list(BinaryReader.str))
        author = r.optional_str()
        license = r.optional_str()
        return cls(
            id=asset_id,
            asset_type=asset_type,
            tags=tags,
            checksum=AssetChecksum.from_bytes(digest),
            dependencies=dependencies,
            author=author,
            license=license,
        )
