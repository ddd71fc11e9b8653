# wren/assets/server.py
from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Queue
from typing import Deque, Dict, List, Optional, Tuple, Type, TypeVar

from wren.assets.binding import (
    FactoryBinding,
    FactoryMessage,
    Free,
    Freed,
    Load,
    Loaded,
    LoadFailed,
)
from wren.assets.errors import FactoryNotFound, NotLoaded
from wren.assets.events import (
    AssetEvent,
    AssetFailed,
    AssetFreed,
    AssetLoaded,
    AssetRead,
    RequestCompleted,
)
from wren.assets.handle import Asset
from wren.assets.ir import IRAsset
from wren.assets.registry import (
    AssetRegistry,
    AssetState,
    EmptyState,
    IRState,
    LoadedState,
)
from wren.assets.requests import (
    AssetQuery,
    AssetRequest,
    AssetRequestID,
    AssetTask,
    AssetTaskID,
    QueryPool,
    RequestCommand,
    TaskCommand,
    TaskIDGenerator,
)
from wren.assets.types import AssetHeader, AssetID, AssetMemoryUsage, AssetType
from wren.dac.manifest import Manifest
from wren.dac.reader import ContainerReader

logger = logging.getLogger(__name__)

T = TypeVar("T")

# task, asset (None for enumerate), IR or manifest, error
_ReadResult = Tuple[AssetTaskID, Optional[AssetID], object, Optional[str]]


@dataclass(frozen=True)
class ServerConfig:
    in_queue_capacity: int = 100
    out_queue_capacity: int = 100
    reader_workers: int = 2
    verify_checksums: bool = False


@dataclass(frozen=True)
class AssetInfo:
    header: AssetHeader
    state: str
    usage: AssetMemoryUsage


class AssetServer:
    """
    Runtime hub over one container.

    ``update()`` is called on the main thread every frame. Container reads
    run on a small worker pool, native objects are built by the factories
    on their own threads; both report back through queues drained here.
    """

    def __init__(
        self,
        container: Path | str,
        config: ServerConfig = ServerConfig(),
        ids: Optional[TaskIDGenerator] = None,
    ) -> None:
        self.config = config
        self.reader = ContainerReader(container)
        self.registry = AssetRegistry()
        for header in self.reader.manifest().headers:
            self.registry.register(header)

        self._pool = QueryPool(ids or TaskIDGenerator())
        self._executor = ThreadPoolExecutor(
            max_workers=config.reader_workers, thread_name_prefix="AssetWorker"
        )
        self._read_queue: Queue[_ReadResult] = Queue()

        self._bindings: Dict[AssetType, FactoryBinding] = {}
        self._outbox: Deque[Tuple[FactoryBinding, FactoryMessage]] = deque()
        self._pending_frees: List[Tuple[AssetTask, Future[None]]] = []
        self._events: List[AssetEvent] = []

        logger.info(
            "Asset server over %s with %d asset(s)",
            self.reader.path,
            len(self.registry),
        )

    # Factories

    def create_factory_binding(self, asset_type: AssetType) -> FactoryBinding:
        if asset_type in self._bindings:
            raise ValueError(f"Factory for {asset_type.name} already bound")
        binding = FactoryBinding(
            asset_type,
            in_capacity=self.config.in_queue_capacity,
            out_capacity=self.config.out_queue_capacity,
        )
        self._bindings[asset_type] = binding
        return binding

    # Requests

    def request(self, request: AssetRequest) -> AssetRequestID:
        """Non-blocking. Progress and the result show up in ``update()``."""
        return self._pool.submit(request, self.registry)

    def enumerate(self) -> AssetRequestID:
        return self.request(AssetRequest(RequestCommand.ENUMERATE))

    def read(
        self, query: AssetQuery, with_dependencies: bool = True
    ) -> AssetRequestID:
        return self.request(AssetRequest(RequestCommand.READ, query, with_dependencies))

    def load(self, asset_id: str, with_dependencies: bool = True) -> AssetRequestID:
        return self.request(
            AssetRequest(
                RequestCommand.LOAD, AssetQuery.by_id(asset_id), with_dependencies
            )
        )

    def load_query(
        self, query: AssetQuery, with_dependencies: bool = True
    ) -> AssetRequestID:
        return self.request(AssetRequest(RequestCommand.LOAD, query, with_dependencies))

    def load_all(self) -> AssetRequestID:
        return self.load_query(AssetQuery.all())

    def free(self, asset_id: str, with_dependencies: bool = True) -> AssetRequestID:
        return self.request(
            AssetRequest(
                RequestCommand.FREE, AssetQuery.by_id(asset_id), with_dependencies
            )
        )

    def free_query(
        self, query: AssetQuery, with_dependencies: bool = True
    ) -> AssetRequestID:
        return self.request(AssetRequest(RequestCommand.FREE, query, with_dependencies))

    def free_all(self) -> AssetRequestID:
        return self.free_query(AssetQuery.all())

    def is_idle(self) -> bool:
        return self._pool.is_idle()

    # Access

    def get(self, asset_id: AssetID) -> Asset:
        state = self.registry.get_state(asset_id)
        if not isinstance(state, LoadedState):
            raise NotLoaded(asset_id)
        return state.asset

    def get_typed(self, asset_id: AssetID, cls: Type[T]) -> T:
        return self.get(asset_id).cast(cls)

    def asset_infos(self) -> List[AssetInfo]:
        infos = []
        for asset_id in self.registry:
            header = self.registry.get_header(asset_id)
            state = self.registry.get_state(asset_id)
            if isinstance(state, LoadedState):
                usage = state.usage
            elif isinstance(state, IRState):
                usage = state.ir.memory_usage()
            else:
                usage = AssetMemoryUsage()
            infos.append(AssetInfo(header, _state_name(state), usage))
        return infos

    # Main loop

    def update(self) -> List[AssetEvent]:
        """
        Called on the main thread. Never blocks: drains what the workers and
        factories produced, hands out ready tasks and returns the events.
        """
        self._drain_reads()
        self._drain_factories()
        self._flush_pending_frees()
        self._flush_outbox()
        self._dispatch()

        for outcome in self._pool.drain_outcomes():
            self._events.append(RequestCompleted(outcome.request_id, outcome.error))

        events, self._events = self._events, []
        return events

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _drain_reads(self) -> None:
        while True:
            try:
                task_id, asset_id, result, error = self._read_queue.get_nowait()
            except Empty:
                return
            if error is not None:
                self._fail(task_id, asset_id, error)
            elif asset_id is None:
                self._finish_enumerate(task_id, result)
            else:
                self.registry.update(asset_id, IRState(result))
                self._pool.task_finished(task_id)
                self._events.append(AssetRead(asset_id))

    def _finish_enumerate(self, task_id: AssetTaskID, manifest: Manifest) -> None:
        added = 0
        for header in manifest.headers:
            if header.id not in self.registry:
                self.registry.register(header)
                added += 1
        logger.debug("Enumerate found %d new asset(s)", added)
        self._pool.task_finished(task_id)

    def _drain_factories(self) -> None:
        for binding in self._bindings.values():
            reply = binding.poll()
            while reply is not None:
                if isinstance(reply, Loaded):
                    self.registry.update(
                        reply.asset_id, LoadedState(reply.asset, reply.usage)
                    )
                    self._pool.task_finished(reply.task_id)
                    self._events.append(AssetLoaded(reply.asset_id))
                elif isinstance(reply, Freed):
                    self.registry.update(reply.asset_id, EmptyState())
                    self._pool.task_finished(reply.task_id)
                    self._events.append(AssetFreed(reply.asset_id))
                elif isinstance(reply, LoadFailed):
                    self._fail(reply.task_id, reply.asset_id, reply.error)
                reply = binding.poll()

    def _flush_pending_frees(self) -> None:
        still_waiting = []
        for task, released in self._pending_frees:
            if released.done():
                self._send_free(task)
            else:
                still_waiting.append((task, released))
        self._pending_frees = still_waiting

    def _flush_outbox(self) -> None:
        while self._outbox:
            binding, message = self._outbox[0]
            if not binding.try_send(message):
                # factory queue full, retry next update
                return
            self._outbox.popleft()

    def _dispatch(self) -> None:
        task = self._pool.next_task(self.registry)
        while task is not None:
            if task.command == TaskCommand.ENUMERATE:
                self._executor.submit(self._worker_enumerate, task.id)
            elif task.command == TaskCommand.READ:
                self._executor.submit(self._worker_read, task.id, task.asset_id)
            elif task.command == TaskCommand.LOAD:
                self._dispatch_load(task)
            else:
                self._dispatch_free(task)
            task = self._pool.next_task(self.registry)

    def _dispatch_load(self, task: AssetTask) -> None:
        asset_id = task.asset_id
        header = self.registry.get_header(asset_id)
        state = self.registry.get_state(asset_id)
        if not isinstance(state, IRState):
            self._fail(task.id, asset_id, f"{asset_id} has no IR to load from")
            return
        binding = self._bindings.get(header.asset_type)
        if binding is None:
            error = FactoryNotFound(f"No factory bound for {header.asset_type.name}")
            self._fail(task.id, asset_id, str(error))
            return

        dependencies: Dict[AssetID, Asset] = {}
        for dep in header.dependencies:
            dep_state = self.registry.get_state(dep)
            if isinstance(dep_state, LoadedState):
                dependencies[dep] = dep_state.asset
        self._send(binding, Load(task.id, asset_id, header, state.ir, dependencies))

    def _dispatch_free(self, task: AssetTask) -> None:
        asset_id = task.asset_id
        state = self.registry.get_state(asset_id)
        if isinstance(state, IRState):
            self.registry.update(asset_id, EmptyState())
            self._pool.task_finished(task.id)
            self._events.append(AssetFreed(asset_id))
            return
        if not isinstance(state, LoadedState):
            self._pool.task_finished(task.id)
            return

        released = state.asset.wait_released()
        if released.done():
            self._send_free(task)
        else:
            logger.debug("Free of %s waits for outstanding borrows", asset_id)
            self._pending_frees.append((task, released))

    def _send_free(self, task: AssetTask) -> None:
        header = self.registry.get_header(task.asset_id)
        binding = self._bindings.get(header.asset_type)
        if binding is None:
            error = FactoryNotFound(f"No factory bound for {header.asset_type.name}")
            self._fail(task.id, task.asset_id, str(error))
            return
        self._send(binding, Free(task.id, task.asset_id))

    def _send(self, binding: FactoryBinding, message: FactoryMessage) -> None:
        if self._outbox or not binding.try_send(message):
            self._outbox.append((binding, message))

    def _fail(
        self, task_id: AssetTaskID, asset_id: Optional[AssetID], error: str
    ) -> None:
        logger.error("Asset %s failed: %s", asset_id, error)
        self._pool.task_finished(task_id, error)
        self._events.append(AssetFailed(asset_id, error))

    # Worker threads

    def _worker_read(self, task_id: AssetTaskID, asset_id: AssetID) -> None:
        try:
            ir: IRAsset = self.reader.read_asset(asset_id, self.config.verify_checksums)
        except Exception as e:
            self._read_queue.put((task_id, asset_id, None, f"{type(e).__name__}: {e}"))
            return
        self._read_queue.put((task_id, asset_id, ir, None))

    def _worker_enumerate(self, task_id: AssetTaskID) -> None:
        try:
            manifest = ContainerReader(self.reader.path).manifest()
        except Exception as e:
            self._read_queue.put((task_id, None, None, f"{type(e).__name__}: {e}"))
            return
        self._read_queue.put((task_id, None, manifest, None))


def _state_name(state: AssetState) -> str:
    if isinstance(state, LoadedState):
        return "loaded"
    if isinstance(state, IRState):
        return "ir"
    return "empty"
