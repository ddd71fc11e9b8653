# wren/pipeline/source.py
from __future__ import annotations

import enum
import hashlib
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from wren.pipeline.errors import SourceError

logger = logging.getLogger(__name__)

DOWNLOAD_DIR = "dl"
DOWNLOAD_TIMEOUT = 30


class CachePolicy(enum.IntEnum):
    USE_CACHE = 0
    BYPASS = 1


@dataclass(frozen=True)
class FileSource:
    """Path as written in the definition, relative to its directory."""

    path: str

    def resolve(self, cwd: Path) -> Path:
        path = Path(self.path)
        return path if path.is_absolute() else cwd / path


@dataclass(frozen=True)
class UrlSource:
    url: str
    cache: CachePolicy = CachePolicy.USE_CACHE


SourceRef = Union[FileSource, UrlSource]


def parse_source(value: Any) -> SourceRef:
    """
    Accepts ``"textures/wall.png"``, ``{file = "..."}`` or
    ``{url = "...", cache = "bypass"}``.
    """
    if isinstance(value, str):
        return FileSource(value)
    if isinstance(value, dict):
        if "file" in value:
            return FileSource(str(value["file"]))
        if "url" in value:
            policy = value.get("cache", "use_cache")
            try:
                cache = CachePolicy[str(policy).strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown cache policy: {policy}") from None
            return UrlSource(str(value["url"]), cache)
    raise ValueError(f"Invalid source reference: {value!r}")


def download_path(source: UrlSource, cache_dir: Path) -> Path:
    digest = hashlib.sha256(source.url.encode("utf-8")).hexdigest()[:16]
    name = Path(urllib.parse.urlparse(source.url).path).name or "download"
    return cache_dir / DOWNLOAD_DIR / f"{digest}_{name}"


def fetch(source: SourceRef, cwd: Path, cache_dir: Path) -> Path:
    """Local path holding the source bytes, downloading URLs first."""
    if isinstance(source, FileSource):
        path = source.resolve(cwd)
        if not path.is_file():
            raise SourceError(f"Source file not found: {path}")
        return path

    target = download_path(source, cache_dir)
    if target.is_file() and source.cache == CachePolicy.USE_CACHE:
        logger.debug("Using downloaded %s", target)
        return target

    logger.info("Downloading %s", source.url)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(target.name + f".{os.getpid()}.tmp")
    try:
        with urllib.request.urlopen(source.url, timeout=DOWNLOAD_TIMEOUT) as response:
            tmp.write_bytes(response.read())
        tmp.replace(target)
    except (urllib.error.URLError, OSError) as e:
        tmp.unlink(missing_ok=True)
        raise SourceError(f"Failed to download {source.url}: {e}") from e
    return target


def read_source(source: SourceRef, cwd: Path, cache_dir: Path) -> bytes:
    return fetch(source, cwd, cache_dir).read_bytes()
