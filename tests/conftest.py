import textwrap
from pathlib import Path
from typing import Iterable, Tuple

import pytest

from wren.assets.ir import IRAsset
from wren.assets.types import AssetHeader
from wren.dac.compression import CompressionLevel
from wren.dac.manifest import Manifest
from wren.dac.writer import write_assets
from wren.pipeline.config import WriteConfig


@pytest.fixture
def write_container(tmp_path):
    """Returns a function packing (header, ir) pairs into a container file."""

    def _write(
        assets: Iterable[Tuple[AssetHeader, IRAsset]],
        name: str = "test.dac",
        level: CompressionLevel = CompressionLevel.DEFAULT,
    ) -> Path:
        path = tmp_path / name
        with open(path, "wb") as f:
            write_assets(f, Manifest(), list(assets), level)
        return path

    return _write


@pytest.fixture
def assets_dir(tmp_path):
    directory = tmp_path / "assets"
    directory.mkdir()
    return directory


@pytest.fixture
def define(assets_dir):
    """Returns a function writing one ``*.toml`` definition."""

    def _define(name: str, body: str, subdir: str = "") -> Path:
        directory = assets_dir / subdir if subdir else assets_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(textwrap.dedent(body))
        return path

    return _define


@pytest.fixture
def write_config(tmp_path):
    return WriteConfig(cache_dir=tmp_path / "cache")
