# wren/pipeline/config.py
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from wren.dac.compression import CompressionLevel
from wren.dac.manifest import ChecksumAlgorithm, ReadMode

DEFAULT_CACHE_DIR = Path(".wren-cache")

# dataclass fields carrying this metadata are left out of the deep hash
NO_HASH = {"deep_hash": False}


@dataclass(frozen=True)
class WriteConfig:
    read_mode: ReadMode = ReadMode.RECURSIVE
    checksum_algorithm: ChecksumAlgorithm = ChecksumAlgorithm.BLAKE3
    compression_level: CompressionLevel = CompressionLevel.DEFAULT
    cache_dir: Path = field(default=DEFAULT_CACHE_DIR, metadata=NO_HASH)
    author: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    license: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> WriteConfig:
        """
        Build from plain values, e.g. a parsed TOML table. Enum fields take
        their member names ("recursive", "blake3", "best").
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        kwargs: dict[str, Any] = dict(data)
        if "read_mode" in kwargs:
            kwargs["read_mode"] = ReadMode.parse(kwargs["read_mode"])
        if "checksum_algorithm" in kwargs:
            kwargs["checksum_algorithm"] = ChecksumAlgorithm.parse(
                kwargs["checksum_algorithm"]
            )
        if "compression_level" in kwargs:
            kwargs["compression_level"] = CompressionLevel.parse(
                kwargs["compression_level"]
            )
        if "cache_dir" in kwargs:
            kwargs["cache_dir"] = Path(kwargs["cache_dir"])
        return cls(**kwargs)

    @classmethod
    def from_toml(cls, path: Path) -> WriteConfig:
        """
        Reads the ``[wren]`` table. A relative cache_dir is taken relative to
        the config file.
        """
        with open(path, "rb") as f:
            data = tomllib.load(f).get("wren", {})
        config = cls.from_mapping(data)
        if "cache_dir" in data and not config.cache_dir.is_absolute():
            config = replace(config, cache_dir=path.parent / config.cache_dir)
        return config
