from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, List, Optional, Tuple

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetID, AssetMemoryUsage, AssetType

# four colour floats, two factors
_FACTORS_SIZE = 4 * 4 + 2 * 4


@dataclass(frozen=True)
class IRMaterial:
    """
    Metallic-roughness PBR material. Textures are referenced by id and must
    be listed as dependencies of the material asset.
    """

    KIND: ClassVar[AssetType] = AssetType.MATERIAL

    base_color_factor: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    base_color_texture: Optional[AssetID] = None
    metallic_roughness_texture: Optional[AssetID] = None
    normal_texture: Optional[AssetID] = None
    occlusion_texture: Optional[AssetID] = None

    def textures(self) -> List[AssetID]:
        return [
            tex
            for tex in (
                self.base_color_texture,
                self.metallic_roughness_texture,
                self.normal_texture,
                self.occlusion_texture,
            )
            if tex is not None
        ]

    def memory_usage(self) -> AssetMemoryUsage:
        ram = _FACTORS_SIZE + sum(len(t.encode("utf-8")) for t in self.textures())
        return AssetMemoryUsage(ram=ram)

    def write(self, w: BinaryWriter) -> None:
        for c in self.base_color_factor:
            w.f32(c)
        w.f32(self.metallic_factor)
        w.f32(self.roughness_factor)
        w.optional_str(self.base_color_texture)
        w.optional_str(self.metallic_roughness_texture)
        w.optional_str(self.normal_texture)
        w.optional_str(self.occlusion_texture)

    @classmethod
    def read(cls, r: BinaryReader) -> IRMaterial:
        color = (r.f32(), r.f32(), r.f32(), r.f32())
        metallic = r.f32()
        roughness = r.f32()

        def tex() -> Optional[AssetID]:
            value = r.optional_str()
            return AssetID(value) if value is not None else None

        return cls(
            base_color_factor=color,
            metallic_factor=metallic,
            roughness_factor=roughness,
            base_color_texture=tex(),
            metallic_roughness_texture=tex(),
            normal_texture=tex(),
            occlusion_texture=tex(),
        )
