# wren/pipeline/__init__.py
"""Offline side: definitions to IR to a packed container, with a build cache."""

from wren.pipeline.builder import (
    AssetFailure,
    BuildReport,
    collect_files,
    sanity_check,
    write_file,
    write_from_directory,
)
from wren.pipeline.cache import Cache
from wren.pipeline.config import WriteConfig
from wren.pipeline.deep_hash import DeepHasher, deep_hash
from wren.pipeline.errors import (
    CircularDependencyError,
    ConversionError,
    DependencyMissing,
    NonUniqueID,
    SourceError,
    UserAssetParseError,
    WriterError,
)
from wren.pipeline.user import UserAsset, normalize_name, parse_user_asset

__all__ = [
    "AssetFailure",
    "BuildReport",
    "Cache",
    "CircularDependencyError",
    "ConversionError",
    "DeepHasher",
    "DependencyMissing",
    "NonUniqueID",
    "SourceError",
    "UserAsset",
    "UserAssetParseError",
    "WriteConfig",
    "WriterError",
    "collect_files",
    "deep_hash",
    "normalize_name",
    "parse_user_asset",
    "sanity_check",
    "write_file",
    "write_from_directory",
]
