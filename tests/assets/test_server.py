import threading
import time

import pytest

from wren.assets.errors import NotLoaded
from wren.assets.events import (
    AssetFailed,
    AssetFreed,
    AssetLoaded,
    AssetRead,
    RequestCompleted,
)
from wren.assets.factory import BasicFactory
from wren.assets.ir import IRBlob, IRDictionary, IRShader, ShaderSourceKind
from wren.assets.registry import EmptyState, IRState, LoadedState
from wren.assets.requests import AssetQuery
from wren.assets.server import AssetServer, ServerConfig
from wren.assets.types import AssetHeader, AssetID, AssetMemoryUsage, AssetType

GLYPHS = b"\x00\x01" * 64


def parse_blob(header, ir, dependencies):
    return ir.data, AssetMemoryUsage(ram=len(ir.data))


def parse_font(header, ir, dependencies):
    font = dict(ir.entries)
    font["glyphs"] = dependencies[AssetID("glyphs")].cast(bytes)
    return font, AssetMemoryUsage(ram=len(font))


@pytest.fixture
def container(write_container):
    return write_container(
        [
            (
                AssetHeader(id=AssetID("glyphs"), asset_type=AssetType.BLOB),
                IRBlob(GLYPHS),
            ),
            (
                AssetHeader(
                    id=AssetID("font"),
                    asset_type=AssetType.DICTIONARY,
                    tags=("ui",),
                    dependencies=(AssetID("glyphs"),),
                ),
                IRDictionary({"name": "Mono", "size": 12}),
            ),
            (
                AssetHeader(id=AssetID("lit"), asset_type=AssetType.SHADER),
                IRShader(sources={ShaderSourceKind.VERTEX: b"void main() {}"}),
            ),
        ]
    )


@pytest.fixture
def server(container):
    server = AssetServer(container, ServerConfig(reader_workers=2))
    yield server
    server.shutdown()


@pytest.fixture
def factories(server):
    freed = []
    blobs = BasicFactory(AssetType.BLOB)
    blobs.bind(server.create_factory_binding(AssetType.BLOB))
    fonts = BasicFactory(AssetType.DICTIONARY)
    fonts.bind(server.create_factory_binding(AssetType.DICTIONARY))
    return [
        (blobs, parse_blob, freed.append),
        (fonts, parse_font, freed.append),
    ], freed


def pump(server, factories, request_id, timeout=5.0):
    """Run the frame loop until ``request_id`` completes; returns all events."""
    events = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        for factory, parse, free in factories:
            factory.process_events(parse, free)
        events.extend(server.update())
        if any(
            isinstance(e, RequestCompleted) and e.request_id == request_id
            for e in events
        ):
            return events
        time.sleep(0.001)
    raise AssertionError(f"request {request_id} never completed")


def completion(events, request_id):
    (done,) = [
        e
        for e in events
        if isinstance(e, RequestCompleted) and e.request_id == request_id
    ]
    return done


def test_registry_is_filled_from_the_manifest(server):
    assert set(server.registry) == {"glyphs", "font", "lit"}
    assert all(
        isinstance(server.registry.get_state(a), EmptyState) for a in server.registry
    )
    assert server.is_idle()


def test_load_with_dependencies(server, factories):
    factories, _ = factories
    request_id = server.load("font")
    events = pump(server, factories, request_id)

    assert completion(events, request_id).ok
    loaded = [e.asset_id for e in events if isinstance(e, AssetLoaded)]
    assert loaded == ["glyphs", "font"]
    read = {e.asset_id for e in events if isinstance(e, AssetRead)}
    assert read == {"glyphs", "font"}

    font = server.get_typed(AssetID("font"), dict)
    assert font == {"name": "Mono", "size": 12, "glyphs": GLYPHS}
    assert server.is_idle()


def test_get_before_load_raises(server):
    with pytest.raises(NotLoaded):
        server.get(AssetID("glyphs"))


def test_get_typed_checks_the_type(server, factories):
    factories, _ = factories
    pump(server, factories, server.load("glyphs"))
    assert server.get_typed(AssetID("glyphs"), bytes) == GLYPHS
    with pytest.raises(TypeError):
        server.get_typed(AssetID("glyphs"), str)


def test_missing_factory_fails_the_request(server, factories):
    factories, _ = factories
    request_id = server.load("lit")
    events = pump(server, factories, request_id)

    done = completion(events, request_id)
    assert not done.ok
    assert "No factory bound for SHADER" in done.error
    assert [e.asset_id for e in events if isinstance(e, AssetFailed)] == ["lit"]
    # the read itself went through
    assert isinstance(server.registry.get_state(AssetID("lit")), IRState)


def test_read_only_decodes(server, factories):
    factories, _ = factories
    request_id = server.read(AssetQuery.by_id("glyphs"))
    pump(server, factories, request_id)

    info = {i.header.id: i for i in server.asset_infos()}
    assert info["glyphs"].state == "ir"
    assert info["glyphs"].usage.ram == len(GLYPHS)
    assert info["font"].state == "empty"


def test_asset_infos_report_loaded_usage(server, factories):
    factories, _ = factories
    pump(server, factories, server.load_all())

    info = {i.header.id: i for i in server.asset_infos()}
    assert info["glyphs"].state == "loaded"
    assert info["glyphs"].usage == AssetMemoryUsage(ram=len(GLYPHS))
    assert info["font"].state == "loaded"
    # no shader factory
    assert info["lit"].state == "ir"


def test_free_waits_for_borrows(server, factories):
    factories, freed = factories
    pump(server, factories, server.load("glyphs"))
    asset = server.get(AssetID("glyphs"))
    asset.acquire()

    request_id = server.free("glyphs")
    for _ in range(20):
        for factory, parse, free in factories:
            factory.process_events(parse, free)
        assert not any(isinstance(e, AssetFreed) for e in server.update())
    assert isinstance(server.registry.get_state(AssetID("glyphs")), LoadedState)

    asset.release()
    events = pump(server, factories, request_id)
    assert completion(events, request_id).ok
    assert AssetFreed(AssetID("glyphs")) in events
    assert freed == [GLYPHS]
    assert asset.dropped
    assert isinstance(server.registry.get_state(AssetID("glyphs")), EmptyState)


def test_free_all_frees_dependents_first(server, factories):
    factories, freed = factories
    pump(server, factories, server.load("font"))

    events = pump(server, factories, server.free_all())
    assert [e.asset_id for e in events if isinstance(e, AssetFreed)] == [
        "font",
        "glyphs",
    ]
    assert server.registry.all_empty()


def test_load_after_free_reloads(server, factories):
    factories, _ = factories
    pump(server, factories, server.load("glyphs"))
    server.free("glyphs")
    request_id = server.load("glyphs")
    events = pump(server, factories, request_id)

    assert completion(events, request_id).ok
    assert AssetLoaded(AssetID("glyphs")) in events
    assert server.get_typed(AssetID("glyphs"), bytes) == GLYPHS


def test_load_free_load_in_one_frame(server, factories):
    factories, _ = factories
    server.load("glyphs")
    server.free("glyphs")
    request_id = server.load("glyphs")
    events = pump(server, factories, request_id)

    assert completion(events, request_id).ok
    assert [type(e) for e in events if isinstance(e, (AssetLoaded, AssetFreed))] == [
        AssetLoaded,
        AssetFreed,
        AssetLoaded,
    ]
    assert server.get_typed(AssetID("glyphs"), bytes) == GLYPHS


def test_enumerate(server, factories):
    factories, _ = factories
    request_id = server.enumerate()
    events = pump(server, factories, request_id)
    assert completion(events, request_id).ok
    assert len(server.registry) == 3


def test_unknown_asset_is_rejected_on_request(server):
    with pytest.raises(KeyError):
        server.load("nope")
    assert server.is_idle()


def test_binding_a_type_twice(server):
    server.create_factory_binding(AssetType.AUDIO)
    with pytest.raises(ValueError):
        server.create_factory_binding(AssetType.AUDIO)


def test_factories_on_their_own_threads(server):
    stop = threading.Event()
    threads = []
    for asset_type, parse in (
        (AssetType.BLOB, parse_blob),
        (AssetType.DICTIONARY, parse_font),
    ):
        factory = BasicFactory(asset_type)
        factory.bind(server.create_factory_binding(asset_type))
        thread = threading.Thread(
            target=factory.run, args=(stop, parse), name=f"{asset_type.name}Factory"
        )
        thread.start()
        threads.append(thread)

    try:
        request_id = server.load_query(AssetQuery.by_tag("ui"))
        events = pump(server, [], request_id)
        assert completion(events, request_id).ok
        assert server.get_typed(AssetID("font"), dict)["size"] == 12

        request_id = server.free_all()
        assert completion(pump(server, [], request_id), request_id).ok
    finally:
        stop.set()
        for thread in threads:
            thread.join(timeout=5)
    assert server.registry.all_empty()
