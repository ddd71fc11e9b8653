# wren/assets/binding.py
"""
Messages between the asset server and the per-type factories, and the
pair of bounded queues that carries them.
"""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from wren.assets.handle import Asset
from wren.assets.ir import IRAsset
from wren.assets.types import AssetHeader, AssetID, AssetMemoryUsage, AssetType

DEFAULT_QUEUE_CAPACITY = 100


@dataclass(frozen=True)
class Load:
    task_id: object
    asset_id: AssetID
    header: AssetHeader
    ir: IRAsset
    dependencies: Dict[AssetID, Asset] = field(default_factory=dict)


@dataclass(frozen=True)
class Free:
    task_id: object
    asset_id: AssetID


@dataclass(frozen=True)
class Loaded:
    task_id: object
    asset_id: AssetID
    asset: Asset
    usage: AssetMemoryUsage


@dataclass(frozen=True)
class Freed:
    task_id: object
    asset_id: AssetID


@dataclass(frozen=True)
class LoadFailed:
    task_id: object
    asset_id: AssetID
    error: str


FactoryMessage = Union[Load, Free]
FactoryReply = Union[Loaded, Freed, LoadFailed]


class FactoryBinding:
    """
    Driver -> factory messages go through ``in_queue``, replies come back
    on ``out_queue``. Both are bounded: a full queue blocks or fails the
    send, a message is never dropped.
    """

    def __init__(
        self,
        asset_type: AssetType,
        in_capacity: int = DEFAULT_QUEUE_CAPACITY,
        out_capacity: int = DEFAULT_QUEUE_CAPACITY,
    ) -> None:
        self.asset_type = asset_type
        self.in_queue: queue.Queue[FactoryMessage] = queue.Queue(maxsize=in_capacity)
        self.out_queue: queue.Queue[FactoryReply] = queue.Queue(maxsize=out_capacity)

    # Driver side

    def send(self, message: FactoryMessage, timeout: float | None = None) -> None:
        """Blocks while the queue is full. Raises queue.Full on timeout."""
        self.in_queue.put(message, block=True, timeout=timeout)

    def try_send(self, message: FactoryMessage) -> bool:
        try:
            self.in_queue.put_nowait(message)
        except queue.Full:
            return False
        return True

    def poll(self) -> Optional[FactoryReply]:
        try:
            return self.out_queue.get_nowait()
        except queue.Empty:
            return None

    # Factory side

    def receive(self, timeout: float | None = None) -> Optional[FactoryMessage]:
        try:
            if timeout == 0:
                return self.in_queue.get_nowait()
            return self.in_queue.get(block=True, timeout=timeout)
        except queue.Empty:
            return None

    def reply(self, message: FactoryReply, timeout: float | None = None) -> None:
        self.out_queue.put(message, block=True, timeout=timeout)
