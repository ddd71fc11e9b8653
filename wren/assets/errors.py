# wren/assets/errors.py
"""Runtime errors raised by the registry, the query pool and the server."""

from wren.errors import AssetNotFound


class AssetRuntimeError(Exception):
    pass


class InvalidTransition(AssetRuntimeError):
    def __init__(self, asset_id: str, current: str, target: str) -> None:
        super().__init__(f"Asset {asset_id} cannot go from {current} to {target}")
        self.asset_id = asset_id


class NotLoaded(AssetRuntimeError):
    def __init__(self, asset_id: str) -> None:
        super().__init__(f"Asset {asset_id} is not loaded")
        self.asset_id = asset_id


class FactoryNotFound(AssetRuntimeError):
    pass


class CircularDependency(AssetRuntimeError):
    def __init__(self, chain) -> None:
        super().__init__("Circular dependency: " + " -> ".join(chain))
        self.chain = tuple(chain)


class UnreleasedBorrowError(AssertionError):
    """An asset was dropped while something still borrowed it."""


class FactoryTypeMismatch(AssertionError):
    """A factory received a message for an asset type it does not handle."""


__all__ = [
    "AssetNotFound",
    "AssetRuntimeError",
    "CircularDependency",
    "FactoryNotFound",
    "FactoryTypeMismatch",
    "InvalidTransition",
    "NotLoaded",
    "UnreleasedBorrowError",
]
