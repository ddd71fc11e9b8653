import pytest

from wren.pipeline.errors import SourceError
from wren.pipeline.source import (
    DOWNLOAD_DIR,
    CachePolicy,
    FileSource,
    UrlSource,
    download_path,
    fetch,
    read_source,
)


@pytest.fixture
def remote(tmp_path):
    """A file served through a ``file://`` URL."""
    directory = tmp_path / "remote"
    directory.mkdir()
    path = directory / "grass.png"
    path.write_bytes(b"v1")
    return path


def test_file_source_resolves_against_the_definition(tmp_path):
    (tmp_path / "textures").mkdir()
    (tmp_path / "textures" / "wall.png").write_bytes(b"wall")

    path = fetch(FileSource("textures/wall.png"), tmp_path, tmp_path / "cache")
    assert path == tmp_path / "textures" / "wall.png"
    assert read_source(FileSource("textures/wall.png"), tmp_path, tmp_path) == b"wall"


def test_missing_file_source(tmp_path):
    with pytest.raises(SourceError, match="not found"):
        fetch(FileSource("nope.png"), tmp_path, tmp_path / "cache")


def test_download_path_keeps_the_file_name(tmp_path):
    path = download_path(UrlSource("https://example.com/t/grass.png?v=2"), tmp_path)
    assert path.parent == tmp_path / DOWNLOAD_DIR
    assert path.name.endswith("_grass.png")
    other = download_path(UrlSource("https://example.com/u/grass.png"), tmp_path)
    assert other != path


def test_download_path_without_a_file_name(tmp_path):
    path = download_path(UrlSource("https://example.com/"), tmp_path)
    assert path.name.endswith("_download")


def test_url_is_downloaded_into_the_cache(tmp_path, remote):
    cache_dir = tmp_path / "cache"
    source = UrlSource(remote.as_uri())

    path = fetch(source, tmp_path, cache_dir)
    assert path == download_path(source, cache_dir)
    assert path.read_bytes() == b"v1"
    assert [p.name for p in path.parent.iterdir()] == [path.name]


def test_cached_download_is_reused(tmp_path, remote):
    cache_dir = tmp_path / "cache"
    source = UrlSource(remote.as_uri())
    fetch(source, tmp_path, cache_dir)

    remote.write_bytes(b"v2")
    assert read_source(source, tmp_path, cache_dir) == b"v1"

    bypass = UrlSource(remote.as_uri(), CachePolicy.BYPASS)
    assert read_source(bypass, tmp_path, cache_dir) == b"v2"
    assert read_source(source, tmp_path, cache_dir) == b"v2"


def test_failed_download(tmp_path):
    source = UrlSource((tmp_path / "missing.png").as_uri())
    with pytest.raises(SourceError, match="Failed to download"):
        fetch(source, tmp_path, tmp_path / "cache")
    assert not download_path(source, tmp_path / "cache").exists()
