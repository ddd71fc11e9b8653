# wren/pipeline/importers/texture.py
from __future__ import annotations

from pathlib import Path
from typing import List

import numpy as np
from PIL import Image, UnidentifiedImageError

from wren.assets.ir.texture import IRTexture, PixelFormat, TextureType
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.base import AssetImporter, ImportContext, PartialIR
from wren.pipeline.user import TextureProperties, UserAsset


def load_rgba(path: Path) -> np.ndarray:
    """(height, width, 4) uint8, first row at the top."""
    try:
        with Image.open(path) as img:
            converted = img.convert("RGBA")
            return np.asarray(converted, dtype=np.uint8).copy()
    except (OSError, UnidentifiedImageError) as e:
        raise ValueError(f"Cannot decode image {path}: {e}") from e


def pack_pixels(rgba: np.ndarray, pixel_format: PixelFormat) -> bytes:
    """Drop or widen channels of an 8-bit RGBA array into ``pixel_format``."""
    if pixel_format == PixelFormat.RGBA8:
        out = rgba
    elif pixel_format == PixelFormat.RGB8:
        out = rgba[..., :3]
    elif pixel_format == PixelFormat.RG8:
        out = rgba[..., :2]
    elif pixel_format == PixelFormat.R8:
        out = rgba[..., :1]
    elif pixel_format == PixelFormat.RGBA16:
        out = rgba.astype("<u2") * 257
    elif pixel_format == PixelFormat.R16:
        out = rgba[..., :1].astype("<u2") * 257
    elif pixel_format == PixelFormat.R32F:
        out = rgba[..., :1].astype("<f4") / np.float32(255.0)
    else:
        raise ValueError(f"Unsupported pixel format {pixel_format!r}")
    return np.ascontiguousarray(out).tobytes()


class TextureImporter(AssetImporter):
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: TextureProperties = asset.properties
        try:
            images = [load_rgba(ctx.fetch(s, asset)) for s in props.sources]
            ir = self._build(props, images)
        except ValueError as e:
            raise ConversionError(asset.path, str(e)) from e
        return self.single(asset, ir)

    def _build(self, props: TextureProperties, images: List[np.ndarray]) -> IRTexture:
        layered = props.texture_type in (
            TextureType.TEXTURE_3D,
            TextureType.TEXTURE_2D_ARRAY,
        )
        if not layered and len(images) != 1:
            raise ValueError(
                f"{props.texture_type.name} takes one source, got {len(images)}"
            )

        height, width = images[0].shape[:2]
        for image in images[1:]:
            if image.shape[:2] != (height, width):
                raise ValueError(
                    f"Layer size {image.shape[1]}x{image.shape[0]} differs from "
                    f"first layer {width}x{height}"
                )
        if props.texture_type == TextureType.TEXTURE_1D and height != 1:
            raise ValueError(f"1D texture must be 1 pixel high, got {height}")

        data = b"".join(pack_pixels(img, props.pixel_format) for img in images)
        return IRTexture(
            data=data,
            width=width,
            height=height,
            depth=len(images),
            texture_type=props.texture_type,
            pixel_format=props.pixel_format,
            sampling=props.sampling,
        )
