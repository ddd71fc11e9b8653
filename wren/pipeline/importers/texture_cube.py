# wren/pipeline/importers/texture_cube.py
from __future__ import annotations

from typing import List, Tuple

import numpy as np

from wren.assets.ir.texture_cube import CubeFace, IRTextureCube
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.base import AssetImporter, ImportContext, PartialIR
from wren.pipeline.importers.texture import load_rgba, pack_pixels
from wren.pipeline.user import TextureCubeProperties, UserAsset

# (column, row) of each face in a horizontal cross, in face-size units
#        [top]
# [left][front][right][back]
#        [bottom]
CROSS_LAYOUT = {
    CubeFace.RIGHT: (2, 1),
    CubeFace.LEFT: (0, 1),
    CubeFace.TOP: (1, 0),
    CubeFace.BOTTOM: (1, 2),
    CubeFace.FRONT: (1, 1),
    CubeFace.BACK: (3, 1),
}


def split_cross(image: np.ndarray) -> Tuple[int, List[np.ndarray]]:
    height, width = image.shape[:2]
    size = width // 4
    if size == 0 or width != 4 * size or height != 3 * size:
        raise ValueError(
            f"Cross image must be 4:3 with square faces, got {width}x{height}"
        )
    faces = []
    for face in CubeFace:
        col, row = CROSS_LAYOUT[face]
        rows = slice(row * size, (row + 1) * size)
        cols = slice(col * size, (col + 1) * size)
        faces.append(image[rows, cols])
    return size, faces


class TextureCubeImporter(AssetImporter):
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: TextureCubeProperties = asset.properties
        try:
            if props.cross is not None:
                size, faces = split_cross(load_rgba(ctx.fetch(props.cross, asset)))
            else:
                faces = [load_rgba(ctx.fetch(f, asset)) for f in props.faces]
                size = self._face_size(faces)
            ir = IRTextureCube(
                faces=tuple(pack_pixels(f, props.pixel_format) for f in faces),
                size=size,
                pixel_format=props.pixel_format,
                sampling=props.sampling,
            )
        except ValueError as e:
            raise ConversionError(asset.path, str(e)) from e
        return self.single(asset, ir)

    @staticmethod
    def _face_size(faces: List[np.ndarray]) -> int:
        height, width = faces[0].shape[:2]
        if height != width:
            raise ValueError(f"Cube faces must be square, got {width}x{height}")
        for face, image in zip(CubeFace, faces):
            if image.shape[:2] != (height, width):
                raise ValueError(
                    f"Face {face.name} is {image.shape[1]}x{image.shape[0]}, "
                    f"expected {width}x{height}"
                )
        return width
