# wren/pipeline/importers/__init__.py
from typing import Dict, List

from wren.assets.types import AssetType
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.audio import AudioImporter
from wren.pipeline.importers.base import AssetImporter, ImportContext, PartialIR
from wren.pipeline.importers.material import MaterialImporter
from wren.pipeline.importers.mesh import ObjImporter
from wren.pipeline.importers.shader import ShaderImporter
from wren.pipeline.importers.simple import (
    BlobImporter,
    DictionaryImporter,
    NotesImporter,
)
from wren.pipeline.importers.texture import TextureImporter
from wren.pipeline.importers.texture_cube import TextureCubeImporter
from wren.pipeline.source import FileSource
from wren.pipeline.user import UserAsset

IMPORTERS: Dict[AssetType, AssetImporter] = {
    AssetType.SHADER: ShaderImporter(),
    AssetType.AUDIO: AudioImporter(),
    AssetType.TEXTURE: TextureImporter(),
    AssetType.TEXTURE_CUBE: TextureCubeImporter(),
    AssetType.NOTES: NotesImporter(),
    AssetType.MESH: ObjImporter(),
    AssetType.MATERIAL: MaterialImporter(),
    AssetType.BLOB: BlobImporter(),
    AssetType.DICTIONARY: DictionaryImporter(),
}


def register_importer(asset_type: AssetType, importer: AssetImporter) -> None:
    IMPORTERS[asset_type] = importer


def convert(asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
    importer = IMPORTERS.get(asset.header.asset_type)
    if importer is None:
        raise ConversionError(
            asset.path, f"No importer for {asset.header.asset_type.name} assets"
        )
    return importer.import_asset(asset, ctx)


def referenced_files(asset: UserAsset) -> List[FileSource]:
    importer = IMPORTERS.get(asset.header.asset_type)
    if importer is None:
        return []
    return importer.referenced_files(asset)


__all__ = [
    "IMPORTERS",
    "AssetImporter",
    "ImportContext",
    "PartialIR",
    "convert",
    "referenced_files",
    "register_importer",
]
