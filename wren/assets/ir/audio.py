from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetMemoryUsage, AssetType

SAMPLE_DTYPE = np.dtype("<f4")


@dataclass(frozen=True)
class IRAudio:
    """
    Interleaved float32 samples (little endian), whatever the source
    format was.
    """

    KIND: ClassVar[AssetType] = AssetType.AUDIO

    data: bytes
    sample_rate: int = 44100
    channels: int = 2

    def __post_init__(self) -> None:
        if self.channels <= 0:
            raise ValueError(f"Audio needs at least one channel, got {self.channels}")
        frame = SAMPLE_DTYPE.itemsize * self.channels
        if len(self.data) % frame:
            raise ValueError(
                f"Audio data length {len(self.data)} is not a multiple of "
                f"{frame} bytes"
            )

    @classmethod
    def from_samples(cls, samples: np.ndarray, sample_rate: int) -> IRAudio:
        """``samples`` is (frames,) or (frames, channels)."""
        if samples.ndim == 1:
            samples = samples[:, np.newaxis]
        channels = samples.shape[1]
        data = np.ascontiguousarray(samples, dtype=SAMPLE_DTYPE).tobytes()
        return cls(data=data, sample_rate=sample_rate, channels=channels)

    @property
    def length(self) -> int:
        """Length in frames."""
        return len(self.data) // (SAMPLE_DTYPE.itemsize * self.channels)

    def samples(self) -> np.ndarray:
        """Read-only (frames, channels) view over the sample bytes."""
        return np.frombuffer(self.data, dtype=SAMPLE_DTYPE).reshape(
            self.length, self.channels
        )

    def memory_usage(self) -> AssetMemoryUsage:
        return AssetMemoryUsage(ram=len(self.data))

    def write(self, w: BinaryWriter) -> None:
        w.u32(self.sample_rate)
        w.u8(self.channels)
        w.bytes(self.data)

    @classmethod
    def read(cls, r: BinaryReader) -> IRAudio:
        sample_rate = r.u32()
        channels = r.u8()
        data = r.bytes()
        return cls(data=data, sample_rate=sample_rate, channels=channels)
