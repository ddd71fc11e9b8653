# wren/dac/manifest.py
from __future__ import annotations

import enum
import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import blake3

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetChecksum, AssetHeader, AssetID
from wren.errors import AssetNotFound

logger = logging.getLogger(__name__)

TOOL_NAME = "wren-dac"
TOOL_VERSION = "0.1.0"


class ReadMode(enum.IntEnum):
    FLAT = 0
    RECURSIVE = 1

    @classmethod
    def parse(cls, name: str) -> ReadMode:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown read mode: {name}") from None


class ChecksumAlgorithm(enum.IntEnum):
    MD5 = 0
    SHA256 = 1
    BLAKE2B = 2
    BLAKE3 = 3

    @classmethod
    def parse(cls, name: str) -> ChecksumAlgorithm:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unsupported checksum algorithm: {name}") from None

    def new(self):
        if self == ChecksumAlgorithm.BLAKE3:
            return blake3.blake3()
        return hashlib.new(_HASHLIB_NAMES[self])

    def checksum(self, data: bytes) -> AssetChecksum:
        h = self.new()
        h.update(data)
        return AssetChecksum.from_bytes(h.digest())


_HASHLIB_NAMES = {
    ChecksumAlgorithm.MD5: "md5",
    ChecksumAlgorithm.SHA256: "sha256",
    ChecksumAlgorithm.BLAKE2B: "blake2b",
}


@dataclass(frozen=True)
class Manifest:
    headers: Tuple[AssetHeader, ...] = ()
    read_mode: ReadMode = ReadMode.RECURSIVE
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.BLAKE3
    created: int = field(default_factory=lambda: int(time.time()))
    tool: str = TOOL_NAME
    tool_version: str = TOOL_VERSION
    author: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    license: Optional[str] = None

    def ids(self) -> Tuple[AssetID, ...]:
        return tuple(h.id for h in self.headers)

    def header(self, asset_id: AssetID) -> AssetHeader:
        for h in self.headers:
            if h.id == asset_id:
                return h
        raise AssetNotFound(asset_id)

    def header_map(self) -> Dict[AssetID, AssetHeader]:
        return {h.id: h for h in self.headers}

    def validate(self) -> None:
        """Only warns: older containers stay readable."""
        if self.tool_version != TOOL_VERSION:
            logger.warning(
                "Container was built by %s %s, this is %s",
                self.tool,
                self.tool_version,
                TOOL_VERSION,
            )

    def encode(self) -> bytes:
        w = BinaryWriter()
        w.str(self.tool)
        w.str(self.tool_version)
        w.i64(self.created)
        w.u8(self.read_mode)
        w.u8(self.checksum_algorithm)
        w.optional_str(self.author)
        w.optional_str(self.description)
        w.optional_str(self.version)
        w.optional_str(self.license)
        w.u32(len(self.headers))
        for header in self.headers:
            header.write(w)
        return w.getvalue()

    @classmethod
    def decode(cls, data: bytes) -> Manifest:
        r = BinaryReader(data)
        tool = r.str()
        tool_version = r.str()
        created = r.i64()
        read_mode = r.enum(ReadMode)
        algorithm = r.enum(ChecksumAlgorithm)
        author = r.optional_str()
        description = r.optional_str()
        version = r.optional_str()
        license = r.optional_str()
        headers = tuple(r.list(AssetHeader.read))
        r.expect_end()
        return cls(
            headers=headers,
            read_mode=read_mode,
            checksum_algorithm=algorithm,
            created=created,
            tool=tool,
            tool_version=tool_version,
            author=author,
            description=description,
            version=version,
            license=license,
        )
