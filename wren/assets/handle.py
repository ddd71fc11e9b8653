# wren/assets/handle.py
from __future__ import annotations

import threading
from concurrent.futures import Future
from contextlib import contextmanager
from typing import Any, Iterator, Type, TypeVar

from wren.assets.errors import UnreleasedBorrowError
from wren.assets.types import AssetType

T = TypeVar("T")


class Asset:
    """
    Type-erased handle to a native object built by a factory.

    The factory that built the value owns it. Everyone else borrows it, and
    the factory may only drop it once every borrow has been released.
    """

    def __init__(self, asset_type: AssetType, value: Any) -> None:
        self.asset_type = asset_type
        self._value = value
        self._lock = threading.Lock()
        self._borrows = 0
        self._dropped = False
        self._released: Future[None] | None = None

    def __repr__(self) -> str:
        return (
            f"Asset({self.asset_type.name}, {type(self._value).__name__}, "
            f"borrows={self._borrows})"
        )

    @property
    def in_use(self) -> bool:
        with self._lock:
            return self._borrows > 0

    @property
    def dropped(self) -> bool:
        return self._dropped

    def cast(self, cls: Type[T]) -> T:
        """Checked downcast of the stored value."""
        if self._dropped:
            raise RuntimeError(f"{self!r} was already dropped")
        if not isinstance(self._value, cls):
            raise TypeError(
                f"Asset holds {type(self._value).__name__}, not {cls.__name__}"
            )
        return self._value

    def acquire(self) -> None:
        with self._lock:
            if self._dropped:
                raise RuntimeError(f"{self!r} was already dropped")
            self._borrows += 1

    def release(self) -> None:
        with self._lock:
            if self._borrows == 0:
                raise RuntimeError("release() without matching acquire()")
            self._borrows -= 1
            if self._borrows == 0 and self._released is not None:
                self._released.set_result(None)
                self._released = None

    @contextmanager
    def borrow(self, cls: Type[T]) -> Iterator[T]:
        self.acquire()
        try:
            yield self.cast(cls)
        finally:
            self.release()

    def wait_released(self) -> Future[None]:
        """
        Future resolved once no borrow is outstanding. Already done when the
        handle is not in use.
        """
        with self._lock:
            if self._borrows == 0:
                done: Future[None] = Future()
                done.set_result(None)
                return done
            if self._released is None:
                self._released = Future()
            return self._released

    def drop(self) -> Any:
        """
        Called by the owning factory when it frees the value. Returns the
        value so the factory can release native resources.
        """
        with self._lock:
            if self._borrows > 0:
                raise UnreleasedBorrowError(
                    f"{self.asset_type.name} asset dropped with "
                    f"{self._borrows} outstanding borrow(s)"
                )
            self._dropped = True
            value, self._value = self._value, None
        return value
