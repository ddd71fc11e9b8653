import pytest

from wren.assets.errors import AssetNotFound, InvalidTransition
from wren.assets.handle import Asset
from wren.assets.ir import IRBlob
from wren.assets.registry import AssetRegistry, EmptyState, IRState, LoadedState
from wren.assets.types import AssetHeader, AssetID, AssetMemoryUsage, AssetType


def header(name, deps=(), tags=()):
    return AssetHeader(
        id=AssetID(name), asset_type=AssetType.BLOB, dependencies=deps, tags=tags
    )


def loaded(value="native"):
    return LoadedState(Asset(AssetType.BLOB, value), AssetMemoryUsage(ram=1))


def test_registry_register_and_get():
    registry = AssetRegistry()
    registry.register(header("a"))

    assert "a" in registry
    assert registry.get_header("a").id == "a"
    assert isinstance(registry.get_state("a"), EmptyState)
    assert len(registry) == 1


def test_registry_missing_item():
    registry = AssetRegistry()

    assert "nope" not in registry
    with pytest.raises(AssetNotFound):
        registry.get_header("nope")
    with pytest.raises(AssetNotFound):
        registry.update("nope", IRState(IRBlob()))


def test_full_lifecycle():
    registry = AssetRegistry()
    registry.register(header("a"))

    registry.update("a", IRState(IRBlob(b"1")))
    registry.update("a", IRState(IRBlob(b"2")))  # re-read
    state = loaded()
    registry.update("a", state)
    assert registry.get_state("a") is state
    assert registry.all_loaded()

    registry.update("a", EmptyState())
    assert registry.all_empty()


@pytest.mark.parametrize(
    "start, target",
    [
        ([], lambda: loaded()),
        ([], lambda: EmptyState()),
        ([IRState(IRBlob()), loaded()], lambda: IRState(IRBlob())),
        ([IRState(IRBlob()), loaded()], lambda: loaded("other")),
    ],
    ids=["empty-to-loaded", "empty-to-empty", "loaded-to-ir", "loaded-to-loaded"],
)
def test_invalid_transitions(start, target):
    registry = AssetRegistry()
    registry.register(header("a"))
    for state in start:
        registry.update("a", state)

    before = registry.get_state("a")
    with pytest.raises(InvalidTransition):
        registry.update("a", target())
    assert registry.get_state("a") is before


def test_re_registering_resets_the_state():
    registry = AssetRegistry()
    registry.register(header("a"))
    registry.update("a", IRState(IRBlob()))

    registry.register(header("a", tags=("new",)))
    assert isinstance(registry.get_state("a"), EmptyState)
    assert registry.get_header("a").tags == ("new",)
    assert registry.keys() == ["a"]
