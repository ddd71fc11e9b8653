# wren/pipeline/importers/base.py
from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List

from wren.assets.ir import IRAsset
from wren.assets.types import AssetID
from wren.pipeline.source import FileSource, SourceRef, fetch
from wren.pipeline.user import UserAsset, UserAssetHeader


@dataclass(frozen=True)
class PartialIR:
    """Converter output: IR plus the header it will be packed with."""

    id: AssetID
    header: UserAssetHeader
    ir: IRAsset


@dataclass(frozen=True)
class ImportContext:
    cache_dir: Path

    def fetch(self, source: SourceRef, asset: UserAsset) -> Path:
        return fetch(source, asset.directory, self.cache_dir)

    def read(self, source: SourceRef, asset: UserAsset) -> bytes:
        return self.fetch(source, asset).read_bytes()


class AssetImporter(ABC):
    @abstractmethod
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        """
        Convert one definition into IR. May emit extra generated assets
        (e.g. materials found inside a mesh file).
        Must be thread-safe.
        """
        pass

    @staticmethod
    def single(asset: UserAsset, ir: IRAsset) -> List[PartialIR]:
        return [PartialIR(asset.id, asset.header, ir)]

    def referenced_files(self, asset: UserAsset) -> List[FileSource]:
        """
        Files the import reads besides the sources named in the definition,
        relative to the definition's directory. They are part of the cache
        key, so editing one forces a rebuild.
        """
        return []


def relative_source(path: Path, asset: UserAsset) -> FileSource:
    rel = os.path.relpath(path, asset.directory.resolve())
    return FileSource(Path(rel).as_posix())
