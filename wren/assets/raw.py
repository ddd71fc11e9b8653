# wren/assets/raw.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from wren.assets.ir import IRAsset
from wren.assets.types import AssetHeader, AssetID
from wren.dac.reader import ContainerReader


@dataclass(frozen=True)
class AssetRaw:
    """One asset straight out of a container, for tools and bulk import."""

    id: AssetID
    header: AssetHeader
    ir: IRAsset
    data: bytes  # serialized IR, decompressed


def read(path: Path | str, verify: bool = False) -> Dict[AssetID, AssetRaw]:
    """Read every asset of a container, keyed by id."""
    reader = ContainerReader(path)
    headers = reader.manifest().header_map()
    result: Dict[AssetID, AssetRaw] = {}
    for asset_id in reader.ids():
        data = reader.read_raw(asset_id)
        ir = reader.decode(asset_id, data, verify)
        result[asset_id] = AssetRaw(asset_id, headers[asset_id], ir, data)
    return result
