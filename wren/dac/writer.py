# wren/dac/writer.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import BinaryIO, Iterable, List, Tuple

from wren.assets.ir import IRAsset, encode_ir
from wren.assets.serializer import U32_MAX
from wren.assets.types import AssetHeader
from wren.dac.compression import CompressionLevel, pack
from wren.dac.container import (
    MAGIC,
    SEGMENT_HEADER,
    TOC,
    BinaryAsset,
    Record,
    SegmentType,
)
from wren.errors import ContainerIOError, SerializationError, SizeOverflow
from wren.dac.manifest import ChecksumAlgorithm, Manifest

logger = logging.getLogger(__name__)


def pack_asset(
    header: AssetHeader,
    ir: IRAsset,
    level: CompressionLevel = CompressionLevel.DEFAULT,
    algorithm: ChecksumAlgorithm = ChecksumAlgorithm.BLAKE3,
) -> BinaryAsset:
    """
    Serialize and compress one asset. The header checksum is set from the
    serialized (uncompressed) IR.
    """
    if ir.KIND != header.asset_type:
        raise SerializationError(
            f"Asset {header.id} is declared {header.asset_type.name} "
            f"but its IR is {ir.KIND.name}"
        )
    raw = encode_ir(ir)
    compression, payload = pack(header.id, raw, level)
    return BinaryAsset(
        header=header.with_checksum(algorithm.checksum(raw)),
        compression=compression,
        raw=payload,
    )


def build_toc(binaries: Iterable[BinaryAsset]) -> Tuple[TOC, bytes]:
    toc = TOC()
    chunks: List[bytes] = []
    offset = 0
    for binary in binaries:
        toc.insert(
            binary.header.id,
            Record(
                offset=offset,
                length=len(binary.raw),
                compression=binary.compression,
            ),
        )
        chunks.append(binary.raw)
        offset += len(binary.raw)
        if offset > U32_MAX:
            raise SizeOverflow(f"Data segment exceeds {U32_MAX} bytes")
    return toc, b"".join(chunks)


def _write_segment(stream: BinaryIO, segment: SegmentType, payload: bytes) -> None:
    if len(payload) > U32_MAX:
        raise SizeOverflow(f"{segment.name} segment exceeds {U32_MAX} bytes")
    stream.write(SEGMENT_HEADER.pack(segment, len(payload)))
    stream.write(payload)


def write_container(
    stream: BinaryIO, manifest: Manifest, binaries: Iterable[BinaryAsset]
) -> TOC:
    """
    Layout: ``DAC`` magic, then the TOC, Manifest and Data segments, each as
    ``[u8 type][u32 LE length][payload]``.
    """
    toc, data = build_toc(binaries)
    toc_raw = toc.encode()
    manifest_raw = manifest.encode()

    try:
        stream.write(MAGIC)
        _write_segment(stream, SegmentType.TOC, toc_raw)
        _write_segment(stream, SegmentType.MANIFEST, manifest_raw)
        _write_segment(stream, SegmentType.DATA, data)
        stream.flush()
    except OSError as e:
        raise ContainerIOError(f"Failed to write container: {e}") from e

    logger.info(
        "Wrote container with %d assets (%d data bytes)", len(toc), len(data)
    )
    return toc


def write_assets(
    stream: BinaryIO,
    manifest: Manifest,
    assets: Iterable[Tuple[AssetHeader, IRAsset]],
    level: CompressionLevel = CompressionLevel.DEFAULT,
) -> TOC:
    """
    Pack IR directly, without a build cache. The manifest header list is
    replaced by the checksummed headers.
    """
    binaries = [
        pack_asset(header, ir, level, manifest.checksum_algorithm)
        for header, ir in assets
    ]
    manifest = replace(manifest, headers=tuple(b.header for b in binaries))
    return write_container(stream, manifest, binaries)
