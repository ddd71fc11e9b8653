# wren/dac/reader.py
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import BinaryIO, Dict, Tuple

from wren.assets.ir import IRAsset, decode_ir
from wren.assets.types import AssetID
from wren.dac.compression import decompress
from wren.dac.container import MAGIC, SEGMENT_HEADER, TOC, SegmentType
from wren.dac.manifest import Manifest
from wren.errors import (
    ChecksumMismatch,
    ContainerIOError,
    DeserializationError,
    InvalidMagic,
    MalformedContainer,
    SegmentNotFound,
)

logger = logging.getLogger(__name__)

# segment type -> (file offset of payload, payload length)
SegmentIndex = Dict[SegmentType, Tuple[int, int]]


def _read_exact(f: BinaryIO, n: int, what: str) -> bytes:
    data = f.read(n)
    if len(data) != n:
        raise MalformedContainer(
            f"Truncated {what}: wanted {n} bytes, got {len(data)}"
        )
    return data


def read_segments(f: BinaryIO) -> SegmentIndex:
    """Walk the segment headers without touching the payloads."""
    f.seek(0, os.SEEK_END)
    file_size = f.tell()
    f.seek(0)

    if f.read(len(MAGIC)) != MAGIC:
        raise InvalidMagic("Not a DAC container")

    segments: SegmentIndex = {}
    while True:
        head = f.read(SEGMENT_HEADER.size)
        if not head:
            break
        if len(head) != SEGMENT_HEADER.size:
            raise MalformedContainer("Truncated segment header")

        kind, length = SEGMENT_HEADER.unpack(head)
        try:
            segment = SegmentType(kind)
        except ValueError:
            raise MalformedContainer(f"Unknown segment type 0x{kind:x}") from None
        if segment in segments:
            raise MalformedContainer(f"Repeated {segment.name} segment")

        offset = f.tell()
        if offset + length > file_size:
            raise MalformedContainer(
                f"{segment.name} segment runs past end of file "
                f"({offset}+{length} > {file_size})"
            )
        segments[segment] = (offset, length)
        f.seek(offset + length)

    return segments


def _segment_bytes(f: BinaryIO, segments: SegmentIndex, segment: SegmentType) -> bytes:
    try:
        offset, length = segments[segment]
    except KeyError:
        raise SegmentNotFound(segment.name) from None
    f.seek(offset)
    return _read_exact(f, length, f"{segment.name} segment")


class ContainerReader:
    """
    Random access into one container file.

    The segment index, TOC and manifest are read once and kept. Asset reads
    open the file on every call, so one reader can be shared between
    worker threads.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._segments: SegmentIndex | None = None
        self._toc: TOC | None = None
        self._manifest: Manifest | None = None

    def _open(self) -> BinaryIO:
        try:
            return open(self.path, "rb")
        except OSError as e:
            raise ContainerIOError(f"Cannot open {self.path}: {e}") from e

    def _index(self, f: BinaryIO) -> SegmentIndex:
        with self._lock:
            if self._segments is None:
                self._segments = read_segments(f)
            return self._segments

    def manifest(self) -> Manifest:
        if self._manifest is None:
            try:
                with self._open() as f:
                    raw = _segment_bytes(f, self._index(f), SegmentType.MANIFEST)
            except OSError as e:
                raise ContainerIOError(f"Failed reading {self.path}: {e}") from e
            manifest = Manifest.decode(raw)
            manifest.validate()
            self._manifest = manifest
        return self._manifest

    def toc(self) -> TOC:
        if self._toc is None:
            try:
                with self._open() as f:
                    raw = _segment_bytes(f, self._index(f), SegmentType.TOC)
            except OSError as e:
                raise ContainerIOError(f"Failed reading {self.path}: {e}") from e
            self._toc = TOC.decode(raw)
        return self._toc

    def ids(self) -> Tuple[AssetID, ...]:
        return tuple(self.toc())

    def _read_record(self, f: BinaryIO, asset_id: AssetID) -> bytes:
        record = self.toc()[asset_id]
        segments = self._index(f)
        try:
            data_offset, data_length = segments[SegmentType.DATA]
        except KeyError:
            raise SegmentNotFound(SegmentType.DATA.name) from None
        if record.end > data_length:
            raise MalformedContainer(
                f"Record for {asset_id} exceeds data segment of {data_length} bytes"
            )
        f.seek(data_offset + record.offset)
        payload = _read_exact(f, record.length, f"asset {asset_id}")
        return decompress(payload, record.compression)

    def read_raw(self, asset_id: AssetID) -> bytes:
        """Serialized IR bytes of one asset, decompressed."""
        try:
            with self._open() as f:
                return self._read_record(f, asset_id)
        except OSError as e:
            raise ContainerIOError(f"Failed reading {self.path}: {e}") from e

    def decode(self, asset_id: AssetID, raw: bytes, verify: bool = False) -> IRAsset:
        """
        Decode bytes from ``read_raw``. The payload must be of the type the
        manifest declares; with ``verify`` the checksum must match as well.
        """
        manifest = self.manifest()
        header = manifest.header(asset_id)
        if verify:
            actual = manifest.checksum_algorithm.checksum(raw)
            if actual != header.checksum:
                raise ChecksumMismatch(asset_id, header.checksum.hex(), actual.hex())
        ir = decode_ir(raw)
        if ir.KIND != header.asset_type:
            raise DeserializationError(
                f"Asset {asset_id} is declared {header.asset_type.name} "
                f"but holds {ir.KIND.name} data"
            )
        return ir

    def read_asset(self, asset_id: AssetID, verify: bool = False) -> IRAsset:
        return self.decode(asset_id, self.read_raw(asset_id), verify)

    def read_all(self, verify: bool = False) -> Dict[AssetID, IRAsset]:
        result: Dict[AssetID, IRAsset] = {}
        try:
            with self._open() as f:
                for asset_id in self.toc():
                    raw = self._read_record(f, asset_id)
                    result[asset_id] = self.decode(asset_id, raw, verify)
        except OSError as e:
            raise ContainerIOError(f"Failed reading {self.path}: {e}") from e
        return result


def read_manifest(path: Path | str) -> Manifest:
    """Manifest only, the Data segment is never read."""
    return ContainerReader(path).manifest()


def read_asset(path: Path | str, asset_id: AssetID, verify: bool = False) -> IRAsset:
    return ContainerReader(path).read_asset(asset_id, verify)
