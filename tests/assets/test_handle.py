import threading

import pytest

from wren.assets.errors import UnreleasedBorrowError
from wren.assets.handle import Asset
from wren.assets.types import AssetType


class Texture:
    def __init__(self, name):
        self.name = name


def test_cast_checks_the_stored_type():
    asset = Asset(AssetType.TEXTURE, Texture("grass"))
    assert asset.cast(Texture).name == "grass"
    with pytest.raises(TypeError, match="not str"):
        asset.cast(str)


def test_borrow_counts():
    asset = Asset(AssetType.TEXTURE, Texture("grass"))
    assert not asset.in_use
    with asset.borrow(Texture) as tex:
        assert tex.name == "grass"
        assert asset.in_use
    assert not asset.in_use


def test_dropping_a_borrowed_asset_is_an_error():
    asset = Asset(AssetType.TEXTURE, Texture("grass"))
    asset.acquire()
    with pytest.raises(UnreleasedBorrowError):
        asset.drop()
    assert not asset.dropped

    asset.release()
    value = asset.drop()
    assert value.name == "grass"
    assert asset.dropped
    with pytest.raises(RuntimeError):
        asset.cast(Texture)
    with pytest.raises(RuntimeError):
        asset.acquire()


def test_release_without_acquire():
    asset = Asset(AssetType.BLOB, b"")
    with pytest.raises(RuntimeError):
        asset.release()


def test_wait_released_is_done_when_unused():
    asset = Asset(AssetType.BLOB, b"")
    assert asset.wait_released().done()


def test_wait_released_resolves_on_last_release():
    asset = Asset(AssetType.BLOB, b"")
    asset.acquire()
    asset.acquire()
    released = asset.wait_released()
    assert not released.done()

    asset.release()
    assert not released.done()
    asset.release()
    assert released.done()


def test_borrows_from_many_threads():
    asset = Asset(AssetType.BLOB, b"data")
    start = threading.Barrier(8)

    def worker():
        start.wait()
        for _ in range(200):
            with asset.borrow(bytes):
                pass

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not asset.in_use
    asset.drop()
