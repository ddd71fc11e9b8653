# wren/pipeline/cache.py
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from wren.dac.container import BinaryAsset, decode_binaries, encode_binaries
from wren.dac.manifest import TOOL_VERSION
from wren.debug.profiler import Measure
from wren.errors import ContainerError, DeserializationError
from wren.pipeline.config import WriteConfig
from wren.pipeline.deep_hash import deep_hash
from wren.pipeline.importers import referenced_files
from wren.pipeline.user import UserAsset

logger = logging.getLogger(__name__)

ENTRY_MAGIC = b"WRC1"
DIGEST_SIZE = 16


def _digest(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=DIGEST_SIZE).digest()


class Cache:
    """
    Converted assets keyed by the deep hash of their inputs.

    One file per key, named by the key's hex. Unreadable or corrupt entries
    count as misses; nothing is ever evicted.
    """

    def __init__(self, config: WriteConfig) -> None:
        self.config = config
        self.directory = Path(config.cache_dir)

    def key(self, asset: UserAsset) -> str:
        """
        Covers the build config, the definition, every file it names and the
        files its importer pulls in on its own (shader includes, ...).
        """
        checksum = deep_hash(
            TOOL_VERSION,
            self.config,
            asset,
            referenced_files(asset),
            algorithm=self.config.checksum_algorithm,
            cwd=asset.directory,
        )
        return checksum.hex()

    def path_for(self, key: str) -> Path:
        return self.directory / key

    def get(self, asset: UserAsset) -> Optional[List[BinaryAsset]]:
        return self.get_key(self.key(asset))

    def insert(self, asset: UserAsset, binaries: List[BinaryAsset]) -> None:
        self.insert_key(self.key(asset), binaries)

    def get_key(self, key: str) -> Optional[List[BinaryAsset]]:
        path = self.path_for(key)
        try:
            with Measure(f"cache read {key}", logger):
                data = path.read_bytes()
                binaries = self._decode(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError, ContainerError) as e:
            logger.debug("Ignoring unusable cache entry %s: %s", path, e)
            return None
        logger.debug("Cache hit %s", key)
        return binaries

    def _decode(self, data: bytes) -> List[BinaryAsset]:
        head = len(ENTRY_MAGIC) + DIGEST_SIZE
        if len(data) < head or not data.startswith(ENTRY_MAGIC):
            raise DeserializationError("bad cache entry header")
        payload = data[head:]
        if _digest(payload) != data[len(ENTRY_MAGIC) : head]:
            raise DeserializationError("cache entry digest mismatch")
        return decode_binaries(payload)

    def insert_key(self, key: str, binaries: List[BinaryAsset]) -> None:
        """Write to a temp file next to the entry, then rename over it."""
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = encode_binaries(binaries)
        data = ENTRY_MAGIC + _digest(payload) + payload
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", dir=self.directory)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            tmp_path.replace(self.path_for(key))
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("Cached %s (%d bytes)", key, len(data))
