# wren/dac/container.py
from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetHeader, AssetID
from wren.errors import AssetNotFound

MAGIC = b"DAC"
MANIFEST_LOCATION = "_manifest"

# [u8 type][u32 LE length]
SEGMENT_HEADER = struct.Struct("<BI")


class SegmentType(enum.IntEnum):
    TOC = 0x0
    MANIFEST = 0x1
    DATA = 0x2


class CompressionMode(enum.IntEnum):
    NONE = 0
    BROTLI = 1


@dataclass(frozen=True)
class Record:
    """Where an asset lives, relative to the start of the Data segment."""

    offset: int
    length: int
    compression: CompressionMode = CompressionMode.NONE

    @property
    def end(self) -> int:
        return self.offset + self.length

    def write(self, w: BinaryWriter) -> None:
        w.u32(self.offset)
        w.u32(self.length)
        w.u8(self.compression)

    @classmethod
    def read(cls, r: BinaryReader) -> Record:
        return cls(
            offset=r.u32(), length=r.u32(), compression=r.enum(CompressionMode)
        )


class TOC(Mapping[AssetID, Record]):
    """Table of contents: asset id to record, in data order."""

    def __init__(self, records: Dict[AssetID, Record] | None = None) -> None:
        self._records: Dict[AssetID, Record] = dict(records or {})

    def __getitem__(self, asset_id: AssetID) -> Record:
        try:
            return self._records[asset_id]
        except KeyError:
            raise AssetNotFound(asset_id) from None

    def __iter__(self) -> Iterator[AssetID]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def insert(self, asset_id: AssetID, record: Record) -> None:
        if asset_id in self._records:
            raise ValueError(f"Duplicate TOC entry: {asset_id}")
        self._records[asset_id] = record

    def encode(self) -> bytes:
        w = BinaryWriter()
        w.u32(len(self._records))
        for asset_id, record in self._records.items():
            w.str(asset_id)
            record.write(w)
        return w.getvalue()

    @classmethod
    def decode(cls, data: bytes) -> TOC:
        r = BinaryReader(data)
        toc = cls()
        for _ in range(r.u32()):
            asset_id = AssetID(r.str())
            toc._records[asset_id] = Record.read(r)
        r.expect_end()
        return toc


@dataclass(frozen=True)
class BinaryAsset:
    """
    One packed asset: the header plus its serialized, possibly compressed
    IR. This is what the build cache stores and the writer lays out.
    """

    header: AssetHeader
    compression: CompressionMode
    raw: bytes

    def write(self, w: BinaryWriter) -> None:
        self.header.write(w)
        w.u8(self.compression)
        w.bytes(self.raw)

    @classmethod
    def read(cls, r: BinaryReader) -> BinaryAsset:
        header = AssetHeader.read(r)
        compression = r.enum(CompressionMode)
        raw = r.bytes()
        return cls(header=header, compression=compression, raw=raw)


def encode_binaries(binaries: List[BinaryAsset]) -> bytes:
    w = BinaryWriter()
    w.u32(len(binaries))
    for binary in binaries:
        binary.write(w)
    return w.getvalue()


def decode_binaries(data: bytes) -> List[BinaryAsset]:
    r = BinaryReader(data)
    binaries = r.list(BinaryAsset.read)
    r.expect_end()
    return binaries
