# wren/pipeline/deep_hash.py
"""
Structural hash of build inputs.

Every value is encoded with a one-byte type tag, so ``"1"`` and ``1`` never
collide. Dataclass fields go in declaration order, mappings and sets in the
order of their encoded keys. File sources contribute the path as written
plus the file bytes, never the absolute location.
"""

from __future__ import annotations

import dataclasses
import enum
import struct
from pathlib import Path, PurePath
from typing import Any, List

from wren.assets.types import AssetChecksum
from wren.dac.manifest import ChecksumAlgorithm
from wren.pipeline.errors import SourceError
from wren.pipeline.source import FileSource, UrlSource

_LEN = struct.Struct("<Q")
_I64 = struct.Struct("<q")
_F64 = struct.Struct("<d")


class _Tag:
    NONE = b"\x00"
    BOOL = b"\x01"
    INT = b"\x02"
    BIG_INT = b"\x03"
    FLOAT = b"\x04"
    STR = b"\x05"
    BYTES = b"\x06"
    SEQ = b"\x07"
    MAP = b"\x08"
    SET = b"\x09"
    ENUM = b"\x0a"
    STRUCT = b"\x0b"
    PATH = b"\x0c"
    FILE = b"\x0d"
    URL = b"\x0e"


class _Buffer:
    def __init__(self) -> None:
        self.parts: List[bytes] = []

    def update(self, data: bytes) -> None:
        self.parts.append(data)

    def getvalue(self) -> bytes:
        return b"".join(self.parts)


class DeepHasher:
    """
    Chained hash: every ``update`` hashes the previous digest followed by the
    new object, so ``update(a); update(b)`` differs from ``update(b);
    update(a)``.
    """

    def __init__(self, algorithm: ChecksumAlgorithm, cwd: Path) -> None:
        self.algorithm = algorithm
        self.cwd = cwd
        self._state = b""

    def update(self, obj: Any) -> None:
        h = self.algorithm.new()
        h.update(self._state)
        self._feed(obj, h)
        self._state = h.digest()

    def digest(self) -> AssetChecksum:
        return AssetChecksum.from_bytes(self._state)

    def hexdigest(self) -> str:
        return self.digest().hex()

    def _str(self, value: str, sink) -> None:
        raw = value.encode("utf-8")
        sink.update(_LEN.pack(len(raw)))
        sink.update(raw)

    def _encoded(self, obj: Any) -> bytes:
        buf = _Buffer()
        self._feed(obj, buf)
        return buf.getvalue()

    def _feed(self, obj: Any, sink) -> None:
        if obj is None:
            sink.update(_Tag.NONE)
        elif isinstance(obj, bool):
            sink.update(_Tag.BOOL + (b"\x01" if obj else b"\x00"))
        elif isinstance(obj, enum.Enum):
            sink.update(_Tag.ENUM)
            self._str(type(obj).__qualname__, sink)
            self._str(obj.name, sink)
        elif isinstance(obj, int):
            if -(2**63) <= obj < 2**63:
                sink.update(_Tag.INT + _I64.pack(obj))
            else:
                sink.update(_Tag.BIG_INT)
                self._str(str(obj), sink)
        elif isinstance(obj, float):
            sink.update(_Tag.FLOAT + _F64.pack(obj))
        elif isinstance(obj, str):
            sink.update(_Tag.STR)
            self._str(obj, sink)
        elif isinstance(obj, (bytes, bytearray, memoryview)):
            sink.update(_Tag.BYTES + _LEN.pack(len(obj)))
            sink.update(bytes(obj))
        elif isinstance(obj, FileSource):
            self._feed_file(obj, sink)
        elif isinstance(obj, UrlSource):
            # the download itself is not hashed, only what was asked for
            sink.update(_Tag.URL)
            self._str(obj.url, sink)
            self._feed(obj.cache, sink)
        elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            sink.update(_Tag.STRUCT)
            self._str(type(obj).__qualname__, sink)
            for f in dataclasses.fields(obj):
                if f.metadata.get("deep_hash", True) is False:
                    continue
                self._str(f.name, sink)
                self._feed(getattr(obj, f.name), sink)
        elif isinstance(obj, PurePath):
            sink.update(_Tag.PATH)
            self._str(obj.as_posix(), sink)
        elif isinstance(obj, (list, tuple)):
            sink.update(_Tag.SEQ + _LEN.pack(len(obj)))
            for item in obj:
                self._feed(item, sink)
        elif isinstance(obj, dict):
            sink.update(_Tag.MAP + _LEN.pack(len(obj)))
            items = sorted(
                (self._encoded(k), self._encoded(v)) for k, v in obj.items()
            )
            for key, value in items:
                sink.update(key)
                sink.update(value)
        elif isinstance(obj, (set, frozenset)):
            sink.update(_Tag.SET + _LEN.pack(len(obj)))
            for item in sorted(self._encoded(i) for i in obj):
                sink.update(item)
        else:
            raise TypeError(f"Cannot deep-hash {type(obj).__name__}")

    def _feed_file(self, source: FileSource, sink) -> None:
        sink.update(_Tag.FILE)
        self._str(Path(source.path).as_posix(), sink)
        path = source.resolve(self.cwd)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise SourceError(f"Cannot hash {path}: {e}") from e
        sink.update(_LEN.pack(len(data)))
        sink.update(data)


def deep_hash(
    *objects: Any, algorithm: ChecksumAlgorithm, cwd: Path
) -> AssetChecksum:
    hasher = DeepHasher(algorithm, cwd)
    for obj in objects:
        hasher.update(obj)
    return hasher.digest()
