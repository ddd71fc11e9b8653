# wren/pipeline/importers/material.py
from __future__ import annotations

from dataclasses import replace
from typing import List

from wren.assets.ir.material import IRMaterial
from wren.assets.types import AssetID
from wren.pipeline.importers.base import AssetImporter, ImportContext, PartialIR
from wren.pipeline.user import MaterialProperties, UserAsset


def _id(value):
    return AssetID(value) if value is not None else None


class MaterialImporter(AssetImporter):
    """Referenced textures become dependencies of the material."""

    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: MaterialProperties = asset.properties
        ir = IRMaterial(
            base_color_factor=props.base_color_factor,
            metallic_factor=props.metallic_factor,
            roughness_factor=props.roughness_factor,
            base_color_texture=_id(props.base_color_texture),
            metallic_roughness_texture=_id(props.metallic_roughness_texture),
            normal_texture=_id(props.normal_texture),
            occlusion_texture=_id(props.occlusion_texture),
        )
        deps = tuple(dict.fromkeys((*asset.header.dependencies, *ir.textures())))
        header = replace(asset.header, dependencies=deps)
        return [PartialIR(asset.id, header, ir)]
