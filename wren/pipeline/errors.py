# wren/pipeline/errors.py
from pathlib import Path


class WriterError(Exception):
    pass


class UserAssetParseError(WriterError):
    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ConversionError(WriterError):
    """A converter could not turn the source into IR."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class SourceError(WriterError):
    """A referenced file or URL could not be fetched."""


class DependencyMissing(WriterError):
    def __init__(self, asset_id: str, dependency: str) -> None:
        super().__init__(f"Asset {asset_id} depends on missing asset {dependency}")
        self.asset_id = asset_id
        self.dependency = dependency


class CircularDependencyError(WriterError):
    pass


class NonUniqueID(WriterError):
    def __init__(self, asset_id: str, paths) -> None:
        super().__init__(
            f"Asset id {asset_id} used by more than one file: "
            + ", ".join(str(p) for p in paths)
        )
        self.asset_id = asset_id
