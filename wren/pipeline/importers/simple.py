# wren/pipeline/importers/simple.py
"""Kinds whose definition already is the IR, or a single file of bytes."""

from __future__ import annotations

from typing import List

from wren.assets.ir.blob import IRBlob
from wren.assets.ir.dictionary import IRDictionary
from wren.assets.ir.notes import IRNotes
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.base import AssetImporter, ImportContext, PartialIR
from wren.pipeline.user import (
    BlobProperties,
    DictionaryProperties,
    NotesProperties,
    UserAsset,
)


class BlobImporter(AssetImporter):
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: BlobProperties = asset.properties
        path = ctx.fetch(props.source, asset)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ConversionError(asset.path, f"Cannot read {path}: {e}") from e
        return self.single(asset, IRBlob(data))


class DictionaryImporter(AssetImporter):
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: DictionaryProperties = asset.properties
        return self.single(asset, IRDictionary(dict(props.entries)))


class NotesImporter(AssetImporter):
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: NotesProperties = asset.properties
        return self.single(asset, IRNotes(tuple(props.events)))
