from __future__ import annotations

import logging
import time
from types import TracebackType

logger = logging.getLogger(__name__)


class Measure:
    """
    Times a block and logs the result at DEBUG.

    Usage:
        with Measure("hash texture"):
            ...
    """

    def __init__(self, label: str, log: logging.Logger | None = None) -> None:
        self.label = label
        self.elapsed = 0.0
        self._log = log or logger
        self._start = 0.0

    def __enter__(self) -> Measure:
        self._start = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.elapsed = time.perf_counter() - self._start
        if exc_type is None:
            self._log.debug("%s took %.2f ms", self.label, self.elapsed * 1000.0)
        else:
            self._log.debug(
                "%s failed after %.2f ms", self.label, self.elapsed * 1000.0
            )
