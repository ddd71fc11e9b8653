from dataclasses import replace

import pytest

from wren.dac.manifest import ChecksumAlgorithm
from wren.pipeline.config import WriteConfig
from wren.pipeline.deep_hash import DeepHasher, deep_hash
from wren.pipeline.errors import SourceError
from wren.pipeline.source import FileSource, UrlSource
from wren.pipeline.user import parse_user_asset

BLOB = """
[header]
asset_type = "blob"
tags = ["data"]

[properties]
source = "payload.bin"
"""


@pytest.fixture
def blob_asset(define, assets_dir):
    (assets_dir / "payload.bin").write_bytes(b"\x00\x01\x02\x03")
    return parse_user_asset(define("payload.toml", BLOB))


def key(*objects, cwd):
    return deep_hash(*objects, algorithm=ChecksumAlgorithm.BLAKE3, cwd=cwd).hex()


def test_hash_is_stable(blob_asset):
    cwd = blob_asset.directory
    assert key(blob_asset, cwd=cwd) == key(blob_asset, cwd=cwd)


def test_single_byte_change_in_a_source_changes_the_hash(blob_asset, assets_dir):
    before = key(blob_asset, cwd=assets_dir)
    (assets_dir / "payload.bin").write_bytes(b"\x00\x01\x02\x04")
    assert key(blob_asset, cwd=assets_dir) != before


def test_config_field_changes_the_hash(tmp_path, blob_asset):
    config = WriteConfig(cache_dir=tmp_path / "c")
    before = key(config, blob_asset, cwd=blob_asset.directory)
    changed = replace(config, author="someone")
    assert key(changed, blob_asset, cwd=blob_asset.directory) != before


def test_cache_dir_does_not_change_the_hash(tmp_path, blob_asset):
    a = WriteConfig(cache_dir=tmp_path / "one")
    b = WriteConfig(cache_dir=tmp_path / "elsewhere" / "two")
    cwd = blob_asset.directory
    assert key(a, blob_asset, cwd=cwd) == key(b, blob_asset, cwd=cwd)


def test_definition_location_does_not_change_the_hash(tmp_path, blob_asset):
    moved_dir = tmp_path / "moved"
    moved_dir.mkdir()
    (moved_dir / "payload.bin").write_bytes(b"\x00\x01\x02\x03")
    (moved_dir / "payload.toml").write_text(BLOB)
    moved = parse_user_asset(moved_dir / "payload.toml")

    assert key(moved, cwd=moved_dir) == key(blob_asset, cwd=blob_asset.directory)


def test_update_order_matters(tmp_path):
    one = DeepHasher(ChecksumAlgorithm.BLAKE3, tmp_path)
    one.update("a")
    one.update("b")
    two = DeepHasher(ChecksumAlgorithm.BLAKE3, tmp_path)
    two.update("b")
    two.update("a")
    assert one.hexdigest() != two.hexdigest()


def test_dict_order_does_not_matter_but_types_do(tmp_path):
    assert key({"a": 1, "b": 2}, cwd=tmp_path) == key({"b": 2, "a": 1}, cwd=tmp_path)
    assert key({"x": 1}, cwd=tmp_path) != key({"x": "1"}, cwd=tmp_path)
    assert key(1, cwd=tmp_path) != key(True, cwd=tmp_path)


def test_url_sources_hash_the_request_not_the_download(tmp_path):
    plain = UrlSource("https://example.com/a.png")
    assert key(plain, cwd=tmp_path) == key(UrlSource(plain.url), cwd=tmp_path)
    assert key(plain, cwd=tmp_path) != key(
        UrlSource("https://example.com/b.png"), cwd=tmp_path
    )


def test_missing_file_is_a_source_error(tmp_path):
    with pytest.raises(SourceError):
        key(FileSource("missing.png"), cwd=tmp_path)


def test_unsupported_objects_are_refused(tmp_path):
    with pytest.raises(TypeError):
        key(object(), cwd=tmp_path)


@pytest.mark.parametrize("algorithm", list(ChecksumAlgorithm))
def test_every_algorithm_gives_a_full_width_key(tmp_path, algorithm):
    digest = deep_hash("wren", algorithm=algorithm, cwd=tmp_path)
    assert len(digest.hex()) == 32
