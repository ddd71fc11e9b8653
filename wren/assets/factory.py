# wren/assets/factory.py
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from wren.assets.binding import (
    FactoryBinding,
    FactoryMessage,
    Free,
    Freed,
    Load,
    Loaded,
    LoadFailed,
)
from wren.assets.errors import FactoryTypeMismatch
from wren.assets.handle import Asset
from wren.assets.ir import IRAsset
from wren.assets.types import AssetHeader, AssetID, AssetMemoryUsage, AssetType

logger = logging.getLogger(__name__)

T = TypeVar("T")

ParseFn = Callable[
    [AssetHeader, IRAsset, Dict[AssetID, Asset]], Tuple[T, AssetMemoryUsage]
]
FreeFn = Callable[[T], None]


class BasicFactory(Generic[T]):
    """
    Turns IR of one asset type into native objects of type ``T`` and owns
    them until they are freed.

    Runs on whatever thread calls ``process_events`` (or ``run``); all state
    here belongs to that thread.
    """

    def __init__(self, asset_type: AssetType) -> None:
        self.asset_type = asset_type
        self._binding: Optional[FactoryBinding] = None
        self._storage: Dict[AssetID, Asset] = {}

    def bind(self, binding: FactoryBinding) -> None:
        if binding.asset_type != self.asset_type:
            raise FactoryTypeMismatch(
                f"Factory for {self.asset_type.name} bound to "
                f"{binding.asset_type.name} queue"
            )
        self._binding = binding

    @property
    def binding(self) -> FactoryBinding:
        if self._binding is None:
            raise RuntimeError(f"{self.asset_type.name} factory is not bound")
        return self._binding

    def __len__(self) -> int:
        return len(self._storage)

    def get(self, asset_id: AssetID) -> Optional[Asset]:
        return self._storage.get(asset_id)

    def process_events(
        self,
        parse: ParseFn,
        free: Optional[FreeFn] = None,
        timeout: float | None = 0,
    ) -> int:
        """
        Handle every pending message. Waits up to ``timeout`` for the first
        one (0 never waits). Returns the number of messages handled.
        """
        binding = self.binding
        handled = 0
        message = binding.receive(timeout)
        while message is not None:
            self._handle(message, parse, free)
            handled += 1
            message = binding.receive(0)
        return handled

    def run(
        self,
        stop: threading.Event,
        parse: ParseFn,
        free: Optional[FreeFn] = None,
        timeout: float = 0.05,
    ) -> None:
        """Factory thread main loop."""
        while not stop.is_set():
            self.process_events(parse, free, timeout)
        self.close()

    def close(self) -> None:
        if self._storage:
            logger.warning(
                "%s factory closed with %d asset(s) still alive: %s",
                self.asset_type.name,
                len(self._storage),
                ", ".join(sorted(self._storage)),
            )

    def _handle(
        self, message: FactoryMessage, parse: ParseFn, free: Optional[FreeFn]
    ) -> None:
        if isinstance(message, Load):
            self._load(message, parse, free)
        elif isinstance(message, Free):
            self._free(message, free)
        else:
            raise FactoryTypeMismatch(f"Unexpected factory message {message!r}")

    def _load(self, message: Load, parse: ParseFn, free: Optional[FreeFn]) -> None:
        if message.header.asset_type != self.asset_type:
            raise FactoryTypeMismatch(
                f"{self.asset_type.name} factory asked to load "
                f"{message.header.asset_type.name} asset {message.asset_id}"
            )
        try:
            value, usage = parse(message.header, message.ir, message.dependencies)
        except Exception as e:
            logger.error("Failed to load %s: %s", message.asset_id, e)
            self.binding.reply(LoadFailed(message.task_id, message.asset_id, str(e)))
            return

        asset = Asset(self.asset_type, value)
        old = self._storage.get(message.asset_id)
        if old is not None:
            logger.warning("Asset %s loaded twice, replacing", message.asset_id)
            self._release(message.asset_id, old, free)
        self._storage[message.asset_id] = asset
        logger.debug("Loaded %s (%d bytes ram)", message.asset_id, usage.ram)
        self.binding.reply(Loaded(message.task_id, message.asset_id, asset, usage))

    def _free(self, message: Free, free: Optional[FreeFn]) -> None:
        asset = self._storage.pop(message.asset_id, None)
        if asset is None:
            logger.warning("Free for unknown asset %s", message.asset_id)
        else:
            self._release(message.asset_id, asset, free)
            logger.debug("Freed %s", message.asset_id)
        self.binding.reply(Freed(message.task_id, message.asset_id))

    def _release(self, asset_id: AssetID, asset: Asset, free: Optional[FreeFn]) -> None:
        value = asset.drop()
        if free is None:
            return
        try:
            free(value)
        except Exception:
            # the driver still gets its reply
            logger.exception("Failed to release native %s", asset_id)
