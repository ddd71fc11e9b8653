# wren/dac/compression.py
from __future__ import annotations

import enum
import logging
from typing import Tuple

import brotli

from wren.dac.container import CompressionMode
from wren.errors import CompressionError

logger = logging.getLogger(__name__)


class CompressionLevel(enum.IntEnum):
    NONE = 0
    FAST = 1
    DEFAULT = 2
    BEST = 3

    @classmethod
    def parse(cls, name: str) -> CompressionLevel:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown compression level: {name}") from None


# (quality, lgwin)
_BROTLI_PARAMS = {
    CompressionLevel.FAST: (3, 20),
    CompressionLevel.DEFAULT: (6, 22),
    CompressionLevel.BEST: (11, 22),
}


def compress(data: bytes, level: CompressionLevel) -> bytes:
    if level == CompressionLevel.NONE:
        return data
    quality, lgwin = _BROTLI_PARAMS[level]
    try:
        return brotli.compress(data, quality=quality, lgwin=lgwin)
    except brotli.error as e:
        raise CompressionError(f"Brotli compression failed: {e}") from e


def decompress(data: bytes, mode: CompressionMode) -> bytes:
    if mode == CompressionMode.NONE:
        return data
    try:
        return brotli.decompress(data)
    except brotli.error as e:
        raise CompressionError(f"Brotli decompression failed: {e}") from e


def pack(
    label: str, raw: bytes, level: CompressionLevel
) -> Tuple[CompressionMode, bytes]:
    """
    Compress ``raw`` and keep the result only when it is non-empty and
    strictly smaller.
    """
    if level == CompressionLevel.NONE:
        return CompressionMode.NONE, raw

    compressed = compress(raw, level)
    if compressed and len(compressed) < len(raw):
        logger.debug(
            "Asset %s compressed from %d to %d (%.2f%%)",
            label,
            len(raw),
            len(compressed),
            len(compressed) / len(raw) * 100.0,
        )
        return CompressionMode.BROTLI, compressed

    logger.debug("Asset %s not compressed (%d bytes)", label, len(raw))
    return CompressionMode.NONE, raw
