# wren/pipeline/importers/audio.py
from __future__ import annotations

from typing import List

import soundfile as sf

from wren.assets.ir.audio import IRAudio
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.base import AssetImporter, ImportContext, PartialIR
from wren.pipeline.user import AudioProperties, UserAsset


class AudioImporter(AssetImporter):
    """Decodes anything libsndfile reads (wav, flac, ogg) to float32 frames."""

    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: AudioProperties = asset.properties
        path = ctx.fetch(props.source, asset)
        try:
            samples, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError, TypeError) as e:
            raise ConversionError(
                asset.path, f"Cannot decode audio {path}: {e}"
            ) from e

        channels = samples.shape[1]
        if props.sample_rate is not None and props.sample_rate != sample_rate:
            raise ConversionError(
                asset.path,
                f"{path} is {sample_rate} Hz, definition expects {props.sample_rate}",
            )
        if props.channels is not None and props.channels != channels:
            raise ConversionError(
                asset.path,
                f"{path} has {channels} channel(s), "
                f"definition expects {props.channels}",
            )
        return self.single(asset, IRAudio.from_samples(samples, sample_rate))
