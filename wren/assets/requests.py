# wren/assets/requests.py
"""
Query pool: turns asset requests into a graph of tasks and hands out the
tasks whose dependencies are done.

A request (load everything tagged "level1", free one mesh, ...) is
unwrapped against the registry into per-asset tasks. Tasks are shared
between requests: a second load of an asset that is already being loaded
waits on the first task instead of creating a new one.
"""

from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, NewType, Optional, Set, Tuple

from wren.assets.errors import CircularDependency
from wren.assets.registry import AssetRegistry, EmptyState, LoadedState
from wren.assets.types import AssetID, AssetType

logger = logging.getLogger(__name__)

AssetRequestID = NewType("AssetRequestID", int)


class RequestCommand(enum.Enum):
    ENUMERATE = "enumerate"
    READ = "read"
    LOAD = "load"
    FREE = "free"


class TaskCommand(enum.Enum):
    ENUMERATE = "enumerate"
    READ = "read"
    LOAD = "load"
    FREE = "free"


class QueryKind(enum.Enum):
    ID = "id"
    TAG = "tag"
    TAGS = "tags"
    TYPE = "type"
    ALL = "all"


@dataclass(frozen=True)
class AssetQuery:
    kind: QueryKind
    value: Any = None

    @classmethod
    def by_id(cls, asset_id: str) -> AssetQuery:
        return cls(QueryKind.ID, AssetID(asset_id))

    @classmethod
    def by_tag(cls, tag: str) -> AssetQuery:
        return cls(QueryKind.TAG, tag)

    @classmethod
    def by_tags(cls, *tags: str) -> AssetQuery:
        """Assets carrying every one of ``tags``."""
        return cls(QueryKind.TAGS, tuple(tags))

    @classmethod
    def by_type(cls, asset_type: AssetType) -> AssetQuery:
        return cls(QueryKind.TYPE, asset_type)

    @classmethod
    def all(cls) -> AssetQuery:
        return cls(QueryKind.ALL)

    def resolve(self, registry: AssetRegistry) -> List[AssetID]:
        if self.kind == QueryKind.ID:
            registry.get_header(self.value)  # raises AssetNotFound
            return [self.value]
        headers = registry.headers()
        if self.kind == QueryKind.TAG:
            return [h.id for h in headers if self.value in h.tags]
        if self.kind == QueryKind.TAGS:
            return [h.id for h in headers if all(t in h.tags for t in self.value)]
        if self.kind == QueryKind.TYPE:
            return [h.id for h in headers if h.asset_type == self.value]
        return [h.id for h in headers]


@dataclass(frozen=True)
class AssetRequest:
    command: RequestCommand
    query: AssetQuery = AssetQuery(QueryKind.ALL)
    with_dependencies: bool = True


@dataclass(frozen=True, order=True)
class AssetTaskID:
    request: AssetRequestID
    sequence: int

    def __str__(self) -> str:
        return f"{self.request}.{self.sequence}"


class TaskIDGenerator:
    """Hands out request and task ids. Inject one per server."""

    def __init__(self, start: int = 1) -> None:
        self._requests = itertools.count(start)
        self._tasks = itertools.count(start)

    def next_request(self) -> AssetRequestID:
        return AssetRequestID(next(self._requests))

    def next_task(self, request: AssetRequestID) -> AssetTaskID:
        return AssetTaskID(request, next(self._tasks))


@dataclass
class AssetTask:
    id: AssetTaskID
    command: TaskCommand
    asset_id: Optional[AssetID]
    dependencies: Set[AssetTaskID] = field(default_factory=set)
    dispatched: bool = False


@dataclass(frozen=True)
class RequestOutcome:
    request_id: AssetRequestID
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class _RequestState:
    request: AssetRequest
    waiting: Set[AssetTaskID] = field(default_factory=set)
    error: Optional[str] = None


TaskKey = Tuple[TaskCommand, Optional[AssetID]]


def dependency_order(
    roots: Iterable[AssetID], registry: AssetRegistry
) -> List[AssetID]:
    """
    ``roots`` and everything they depend on, dependencies first.
    Raises CircularDependency on a cycle and AssetNotFound on a dangling id.
    """
    order: List[AssetID] = []
    done: Set[AssetID] = set()
    stack: List[AssetID] = []

    def visit(asset_id: AssetID) -> None:
        if asset_id in done:
            return
        if asset_id in stack:
            raise CircularDependency(stack[stack.index(asset_id) :] + [asset_id])
        stack.append(asset_id)
        for dep in registry.get_header(asset_id).dependencies:
            visit(dep)
        stack.pop()
        done.add(asset_id)
        order.append(asset_id)

    for root in roots:
        visit(root)
    return order


class QueryPool:
    def __init__(self, ids: TaskIDGenerator) -> None:
        self._ids = ids
        self._tasks: Dict[AssetTaskID, AssetTask] = {}
        self._by_key: Dict[TaskKey, AssetTaskID] = {}
        self._requests: Dict[AssetRequestID, _RequestState] = {}
        self._outcomes: List[RequestOutcome] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def is_idle(self) -> bool:
        return not self._tasks and not self._requests

    def get_task(self, task_id: AssetTaskID) -> AssetTask:
        return self._tasks[task_id]

    def pending_requests(self) -> List[AssetRequestID]:
        return list(self._requests)

    # Unwrapping

    def submit(
        self, request: AssetRequest, registry: AssetRegistry
    ) -> AssetRequestID:
        """
        Unwrap ``request`` into tasks. Lookup errors and dependency cycles
        are raised here, before any task is created.
        """
        targets = request.query.resolve(registry)
        if request.with_dependencies and request.command != RequestCommand.ENUMERATE:
            targets = dependency_order(targets, registry)

        request_id = self._ids.next_request()
        state = _RequestState(request)
        self._requests[request_id] = state

        if request.command == RequestCommand.ENUMERATE:
            self._task(request_id, TaskCommand.ENUMERATE, None)
        elif request.command == RequestCommand.READ:
            for asset_id in targets:
                if isinstance(registry.get_state(asset_id), EmptyState):
                    self._task(request_id, TaskCommand.READ, asset_id)
        elif request.command == RequestCommand.LOAD:
            self._unwrap_load(request_id, targets, request.with_dependencies, registry)
        else:
            self._unwrap_free(request_id, targets, request, registry)

        logger.debug(
            "Request %s %s -> %d task(s)",
            request_id,
            request.command.value,
            len(state.waiting),
        )
        if not state.waiting:
            self._complete(request_id)
        return request_id

    def _task(
        self,
        request_id: AssetRequestID,
        command: TaskCommand,
        asset_id: Optional[AssetID],
        dependencies: Iterable[AssetTaskID] = (),
    ) -> AssetTaskID:
        key = (command, asset_id)
        task_id = self._by_key.get(key)
        if task_id is None:
            task_id = self._ids.next_task(request_id)
            self._tasks[task_id] = AssetTask(
                task_id, command, asset_id, set(dependencies)
            )
            self._by_key[key] = task_id
        self._requests[request_id].waiting.add(task_id)
        return task_id

    def _unwrap_load(
        self,
        request_id: AssetRequestID,
        targets: List[AssetID],
        with_dependencies: bool,
        registry: AssetRegistry,
    ) -> None:
        for asset_id in targets:
            pending_free = self._by_key.get((TaskCommand.FREE, asset_id))
            state = registry.get_state(asset_id)
            if isinstance(state, LoadedState) and pending_free is None:
                continue

            deps: Set[AssetTaskID] = set()
            if pending_free is not None or isinstance(state, EmptyState):
                read_after = [pending_free] if pending_free is not None else []
                deps.add(
                    self._task(request_id, TaskCommand.READ, asset_id, read_after)
                )
            if with_dependencies:
                for dep in registry.get_header(asset_id).dependencies:
                    dep_load = self._by_key.get((TaskCommand.LOAD, dep))
                    if dep_load is not None:
                        deps.add(dep_load)
            self._task(request_id, TaskCommand.LOAD, asset_id, deps)

    def _unwrap_free(
        self,
        request_id: AssetRequestID,
        targets: List[AssetID],
        request: AssetRequest,
        registry: AssetRegistry,
    ) -> None:
        roots = set(request.query.resolve(registry))
        to_free: Set[AssetID] = set(roots)

        # dependents first; a dependency goes only if nothing outside keeps it
        for asset_id in reversed(targets):
            if asset_id in to_free:
                continue
            users = [
                h.id
                for h in registry.headers()
                if asset_id in h.dependencies and self._holds(h.id, registry)
            ]
            if all(u in to_free for u in users):
                to_free.add(asset_id)

        for asset_id in reversed(targets):
            if asset_id not in to_free or not self._holds(asset_id, registry):
                continue
            deps = [
                self._by_key[(TaskCommand.FREE, h.id)]
                for h in registry.headers()
                if asset_id in h.dependencies
                and h.id in to_free
                and (TaskCommand.FREE, h.id) in self._by_key
            ]
            self._task(request_id, TaskCommand.FREE, asset_id, deps)
            # loads submitted from now on must not attach to tasks the free undoes
            self._by_key.pop((TaskCommand.READ, asset_id), None)
            self._by_key.pop((TaskCommand.LOAD, asset_id), None)

    def _holds(self, asset_id: AssetID, registry: AssetRegistry) -> bool:
        """The asset has data now or will have once pending tasks finish."""
        if not isinstance(registry.get_state(asset_id), EmptyState):
            return True
        return (TaskCommand.LOAD, asset_id) in self._by_key or (
            TaskCommand.READ,
            asset_id,
        ) in self._by_key

    # Scheduling

    def next_task(self, registry: AssetRegistry) -> Optional[AssetTask]:
        """Next task with no unfinished dependencies, marked dispatched."""
        for task in self._tasks.values():
            if task.dispatched or task.dependencies:
                continue
            if task.command == TaskCommand.FREE and self._free_blocked(task, registry):
                continue
            task.dispatched = True
            return task
        return None

    def _free_blocked(self, free: AssetTask, registry: AssetRegistry) -> bool:
        # only tasks submitted before the free can hold it back
        for task in self._tasks.values():
            if task.command == TaskCommand.FREE or task.id.sequence > free.id.sequence:
                continue
            if task.asset_id == free.asset_id:
                return True
            if (
                task.command == TaskCommand.LOAD
                and free.asset_id in registry.get_header(task.asset_id).dependencies
            ):
                return True
        return False

    def task_finished(
        self, task_id: AssetTaskID, error: Optional[str] = None
    ) -> None:
        """
        Mark a dispatched task done. With ``error`` every task waiting on it
        fails too, and so do the requests that own them.
        """
        task = self._tasks.pop(task_id)
        key = (task.command, task.asset_id)
        if self._by_key.get(key) == task_id:
            del self._by_key[key]

        dependents = [t for t in self._tasks.values() if task_id in t.dependencies]
        for dependent in dependents:
            dependent.dependencies.discard(task_id)

        self._settle(task_id, error)

        if error is not None:
            for dependent in dependents:
                if dependent.id in self._tasks:
                    self.task_finished(
                        dependent.id,
                        f"dependency {task.asset_id} failed: {error}",
                    )

    def _settle(self, task_id: AssetTaskID, error: Optional[str]) -> None:
        for request_id, state in list(self._requests.items()):
            if task_id not in state.waiting:
                continue
            state.waiting.discard(task_id)
            if error is not None and state.error is None:
                state.error = error
            if not state.waiting:
                self._complete(request_id)

    def _complete(self, request_id: AssetRequestID) -> None:
        state = self._requests.pop(request_id)
        self._outcomes.append(RequestOutcome(request_id, state.error))
        if state.error is None:
            logger.debug("Request %s completed", request_id)
        else:
            logger.warning("Request %s failed: %s", request_id, state.error)

    def drain_outcomes(self) -> List[RequestOutcome]:
        outcomes, self._outcomes = self._outcomes, []
        return outcomes
