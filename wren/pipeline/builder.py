# wren/pipeline/builder.py
"""
Directory of ``*.toml`` definitions in, one container out.

Per definition: deep-hash it, try the cache, convert and pack on a miss,
then store the result. A failing definition is reported and skipped; the
rest of the batch still goes into the container.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Optional, Sequence, Tuple

from wren.assets.types import AssetHeader, AssetID
from wren.dac.container import MANIFEST_LOCATION, BinaryAsset
from wren.dac.manifest import Manifest, ReadMode
from wren.dac.writer import pack_asset, write_container
from wren.debug.profiler import Measure
from wren.errors import ContainerError
from wren.pipeline.cache import Cache
from wren.pipeline.config import WriteConfig
from wren.pipeline.errors import (
    CircularDependencyError,
    DependencyMissing,
    NonUniqueID,
    WriterError,
)
from wren.pipeline.importers import ImportContext, PartialIR, convert
from wren.pipeline.user import UserAsset, parse_user_asset

logger = logging.getLogger(__name__)

DEFINITION_SUFFIX = ".toml"

# asset, binaries, cache hit, error
_Result = Tuple[UserAsset, Optional[List[BinaryAsset]], bool, Optional[Exception]]


@dataclass(frozen=True)
class AssetFailure:
    path: Path
    error: str


@dataclass
class BuildReport:
    written: List[AssetID] = field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0
    failures: List[AssetFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def collect_files(input_dir: Path, read_mode: ReadMode) -> List[Path]:
    pattern = f"*{DEFINITION_SUFFIX}"
    if read_mode == ReadMode.RECURSIVE:
        found = input_dir.rglob(pattern)
    else:
        found = input_dir.glob(pattern)
    return sorted(p for p in found if p.is_file())


def to_header(partial: PartialIR) -> AssetHeader:
    user = partial.header
    return AssetHeader(
        id=partial.id,
        asset_type=user.asset_type,
        tags=tuple(user.tags),
        dependencies=tuple(AssetID(d) for d in user.dependencies),
        author=user.author,
        license=user.license,
    )


def build_asset(
    asset: UserAsset, config: WriteConfig, cache: Cache
) -> Tuple[List[BinaryAsset], bool]:
    """Binaries for one definition and whether they came from the cache."""
    cached = cache.get(asset)
    if cached is not None:
        return cached, True

    ctx = ImportContext(cache_dir=Path(config.cache_dir))
    with Measure(f"convert {asset.id}", logger):
        partials = convert(asset, ctx)
        binaries = [
            pack_asset(
                to_header(p),
                p.ir,
                config.compression_level,
                config.checksum_algorithm,
            )
            for p in partials
        ]
    cache.insert(asset, binaries)
    return binaries, False


def sanity_check(headers: Sequence[AssetHeader]) -> None:
    """Ids unique and not reserved, every dependency present, no cycles."""
    by_id: Dict[AssetID, AssetHeader] = {}
    for header in headers:
        if header.id == MANIFEST_LOCATION:
            raise WriterError(f"Asset id {MANIFEST_LOCATION} is reserved")
        if header.id in by_id:
            raise NonUniqueID(header.id, [])
        by_id[header.id] = header

    for header in headers:
        for dep in header.dependencies:
            if dep not in by_id:
                raise DependencyMissing(header.id, dep)

    done: set = set()
    stack: List[AssetID] = []

    def visit(asset_id: AssetID) -> None:
        if asset_id in done:
            return
        if asset_id in stack:
            chain = stack[stack.index(asset_id) :] + [asset_id]
            raise CircularDependencyError(
                "Circular dependency: " + " -> ".join(chain)
            )
        stack.append(asset_id)
        for dep in by_id[asset_id].dependencies:
            visit(dep)
        stack.pop()
        done.add(asset_id)

    for header in headers:
        visit(header.id)


def _check_unique(assets: Iterable[UserAsset]) -> None:
    seen: Dict[AssetID, List[Path]] = {}
    for asset in assets:
        seen.setdefault(asset.id, []).append(asset.path)
    for asset_id, paths in seen.items():
        if len(paths) > 1:
            raise NonUniqueID(asset_id, paths)


def _drop_broken_dependents(
    binaries: Dict[Path, List[BinaryAsset]], report: BuildReport
) -> None:
    """Definitions whose dependency failed to build fail as well."""
    while True:
        present = {b.header.id for bins in binaries.values() for b in bins}
        failed_ids = {
            b.header.id: dep
            for bins in binaries.values()
            for b in bins
            for dep in b.header.dependencies
            if dep not in present
        }
        broken = [
            path
            for path, bins in binaries.items()
            if any(b.header.id in failed_ids for b in bins)
        ]
        if not broken:
            return
        for path in broken:
            bins = binaries.pop(path)
            culprit = next(b.header.id for b in bins if b.header.id in failed_ids)
            error = str(DependencyMissing(culprit, failed_ids[culprit]))
            logger.error("%s: %s", path, error)
            report.failures.append(AssetFailure(path, error))


def write_from_directory(
    stream: BinaryIO,
    input_dir: Path,
    config: WriteConfig = WriteConfig(),
    fail_fast: bool = False,
    workers: int = 1,
) -> BuildReport:
    """
    Build every definition under ``input_dir`` into ``stream``.

    Failing definitions end up in the report (or are raised straight away
    with ``fail_fast``). Duplicate ids, dangling dependencies and cycles
    among the assets that did build always raise.
    """
    input_dir = Path(input_dir)
    report = BuildReport()
    cache = Cache(config)

    files = collect_files(input_dir, config.read_mode)
    logger.info("Building %d definition(s) from %s", len(files), input_dir)

    assets: List[UserAsset] = []
    for path in files:
        try:
            assets.append(parse_user_asset(path))
        except WriterError as e:
            if fail_fast:
                raise
            logger.error("%s", e)
            report.failures.append(AssetFailure(path, str(e)))
    _check_unique(assets)

    def build(asset: UserAsset) -> _Result:
        try:
            binaries, hit = build_asset(asset, config, cache)
        except (WriterError, ContainerError, ValueError) as e:
            return asset, None, False, e
        return asset, binaries, hit, None

    built: Dict[Path, List[BinaryAsset]] = {}
    with Measure("build assets", logger) as timer:
        if workers > 1:
            with ThreadPoolExecutor(
                workers, thread_name_prefix="AssetBuilder"
            ) as pool:
                results = list(pool.map(build, assets))
        else:
            results = [build(asset) for asset in assets]

    for asset, binaries, hit, error in results:
        if error is not None:
            if fail_fast:
                raise error
            logger.error("Failed to build %s: %s", asset.path, error)
            report.failures.append(AssetFailure(asset.path, str(error)))
            continue
        if hit:
            report.cache_hits += 1
        else:
            report.cache_misses += 1
        built[asset.path] = binaries

    if report.failures:
        _drop_broken_dependents(built, report)

    binaries = [b for path in sorted(built) for b in built[path]]
    headers = [b.header for b in binaries]
    sanity_check(headers)

    manifest = Manifest(
        headers=tuple(headers),
        read_mode=config.read_mode,
        checksum_algorithm=config.checksum_algorithm,
        author=config.author,
        description=config.description,
        version=config.version,
        license=config.license,
    )
    write_container(stream, manifest, binaries)
    report.written = [h.id for h in headers]

    logger.info(
        "Built %d asset(s) in %.2f s: %d cache hit(s), %d miss(es), %d failure(s)",
        len(report.written),
        timer.elapsed,
        report.cache_hits,
        report.cache_misses,
        len(report.failures),
    )
    return report


def write_file(
    output: Path,
    input_dir: Path,
    config: WriteConfig = WriteConfig(),
    fail_fast: bool = False,
    workers: int = 1,
) -> BuildReport:
    """Like ``write_from_directory``; the file is only replaced on success."""
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    tmp = output.with_name(output.name + ".tmp")
    try:
        with open(tmp, "wb") as f:
            report = write_from_directory(f, input_dir, config, fail_fast, workers)
        tmp.replace(output)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return report
