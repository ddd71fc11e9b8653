# wren/assets/registry.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Union

from wren.assets.errors import AssetNotFound, InvalidTransition
from wren.assets.handle import Asset
from wren.assets.ir import IRAsset
from wren.assets.types import AssetHeader, AssetID, AssetMemoryUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmptyState:
    pass


@dataclass(frozen=True)
class IRState:
    ir: IRAsset


@dataclass(frozen=True)
class LoadedState:
    asset: Asset
    usage: AssetMemoryUsage


AssetState = Union[EmptyState, IRState, LoadedState]

_TRANSITIONS = {
    EmptyState: (IRState,),
    IRState: (IRState, LoadedState, EmptyState),
    LoadedState: (EmptyState,),
}


@dataclass
class AssetContainer:
    header: AssetHeader
    state: AssetState


class AssetRegistry:
    """
    Header and lifecycle state of every known asset.
    Empty -> IR -> Loaded, and back to Empty when freed.
    Owned by the driver thread only.
    """

    def __init__(self) -> None:
        self._containers: Dict[AssetID, AssetContainer] = {}

    def register(self, header: AssetHeader) -> None:
        """Add or replace an asset. Its state starts over at Empty."""
        if header.id in self._containers:
            logger.debug("Re-registering asset %s", header.id)
        self._containers[header.id] = AssetContainer(header, EmptyState())

    def update(self, asset_id: AssetID, state: AssetState) -> None:
        container = self._get(asset_id)
        allowed = _TRANSITIONS[type(container.state)]
        if not isinstance(state, allowed):
            raise InvalidTransition(
                asset_id, type(container.state).__name__, type(state).__name__
            )
        container.state = state

    def _get(self, asset_id: AssetID) -> AssetContainer:
        try:
            return self._containers[asset_id]
        except KeyError:
            raise AssetNotFound(asset_id) from None

    def get_header(self, asset_id: AssetID) -> AssetHeader:
        return self._get(asset_id).header

    def get_state(self, asset_id: AssetID) -> AssetState:
        return self._get(asset_id).state

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._containers

    def __len__(self) -> int:
        return len(self._containers)

    def __iter__(self) -> Iterator[AssetID]:
        return iter(self._containers)

    def keys(self) -> List[AssetID]:
        return list(self._containers)

    def headers(self) -> List[AssetHeader]:
        return [c.header for c in self._containers.values()]

    def all_loaded(self) -> bool:
        return all(isinstance(c.state, LoadedState) for c in self._containers.values())

    def all_empty(self) -> bool:
        return all(isinstance(c.state, EmptyState) for c in self._containers.values())
