# wren/errors.py
"""Errors raised while writing or reading a container."""


class ContainerError(Exception):
    pass


class CompressionError(ContainerError):
    pass


class SerializationError(ContainerError):
    pass


class DeserializationError(ContainerError):
    pass


class ContainerIOError(ContainerError):
    pass


class SizeOverflow(ContainerError):
    """A segment or the data block does not fit in a u32."""


class InvalidMagic(ContainerError):
    pass


class SegmentNotFound(ContainerError):
    def __init__(self, segment: str) -> None:
        super().__init__(f"Segment not found: {segment}")
        self.segment = segment


class MalformedContainer(ContainerError):
    """Truncated segment, repeated segment or a record outside the data."""


class AssetNotFound(ContainerError, KeyError):
    def __init__(self, asset_id: str) -> None:
        super().__init__(asset_id)
        self.asset_id = asset_id

    def __str__(self) -> str:
        return f"Asset not found: {self.asset_id}"


class ChecksumMismatch(ContainerError):
    def __init__(self, asset_id: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for {asset_id}: expected {expected}, got {actual}"
        )
        self.asset_id = asset_id
