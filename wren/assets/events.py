# wren/assets/events.py
from dataclasses import dataclass
from typing import Optional

from wren.assets.types import AssetID


class AssetEvent:
    """Base class for everything ``AssetServer.update`` reports."""

    pass


@dataclass(frozen=True)
class RequestCompleted(AssetEvent):
    request_id: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AssetRead(AssetEvent):
    asset_id: AssetID


@dataclass(frozen=True)
class AssetLoaded(AssetEvent):
    asset_id: AssetID


@dataclass(frozen=True)
class AssetFreed(AssetEvent):
    asset_id: AssetID


@dataclass(frozen=True)
class AssetFailed(AssetEvent):
    asset_id: Optional[AssetID]
    error: str
