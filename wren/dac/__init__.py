# wren/dac/__init__.py
"""DAC container: ``DAC`` magic followed by TOC, Manifest and Data segments."""

from wren.errors import (
    AssetNotFound,
    ChecksumMismatch,
    CompressionError,
    ContainerError,
    ContainerIOError,
    DeserializationError,
    InvalidMagic,
    MalformedContainer,
    SegmentNotFound,
    SerializationError,
    SizeOverflow,
)
from wren.dac.container import (
    MAGIC,
    MANIFEST_LOCATION,
    TOC,
    BinaryAsset,
    CompressionMode,
    Record,
    SegmentType,
)
from wren.dac.compression import CompressionLevel
from wren.dac.manifest import (
    TOOL_NAME,
    TOOL_VERSION,
    ChecksumAlgorithm,
    Manifest,
    ReadMode,
)
from wren.dac.reader import ContainerReader, read_asset, read_manifest
from wren.dac.writer import pack_asset, write_assets, write_container

__all__ = [
    "AssetNotFound",
    "BinaryAsset",
    "ChecksumAlgorithm",
    "ChecksumMismatch",
    "CompressionError",
    "CompressionLevel",
    "CompressionMode",
    "ContainerError",
    "ContainerIOError",
    "ContainerReader",
    "DeserializationError",
    "InvalidMagic",
    "MAGIC",
    "MANIFEST_LOCATION",
    "MalformedContainer",
    "Manifest",
    "ReadMode",
    "Record",
    "SegmentNotFound",
    "SegmentType",
    "SerializationError",
    "SizeOverflow",
    "TOC",
    "TOOL_NAME",
    "TOOL_VERSION",
    "pack_asset",
    "read_asset",
    "read_manifest",
    "write_assets",
    "write_container",
]
