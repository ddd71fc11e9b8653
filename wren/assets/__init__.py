# wren/assets/__init__.py
from wren.assets.errors import (
    AssetNotFound,
    CircularDependency,
    FactoryNotFound,
    FactoryTypeMismatch,
    InvalidTransition,
    NotLoaded,
    UnreleasedBorrowError,
)
from wren.assets.handle import Asset
from wren.assets.registry import (
    AssetContainer,
    AssetRegistry,
    EmptyState,
    IRState,
    LoadedState,
)
from wren.assets.types import (
    AssetChecksum,
    AssetHeader,
    AssetID,
    AssetMemoryUsage,
    AssetType,
)

__all__ = [
    "Asset",
    "AssetChecksum",
    "AssetContainer",
    "AssetHeader",
    "AssetID",
    "AssetMemoryUsage",
    "AssetNotFound",
    "AssetRegistry",
    "AssetType",
    "CircularDependency",
    "EmptyState",
    "FactoryNotFound",
    "FactoryTypeMismatch",
    "IRState",
    "InvalidTransition",
    "LoadedState",
    "NotLoaded",
    "UnreleasedBorrowError",
]
