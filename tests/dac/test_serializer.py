import numpy as np
import pytest

from wren.assets.ir import (
    IRAudio,
    IRBlob,
    IRDictionary,
    IRMaterial,
    IRNotes,
    IRShader,
    IRTexture,
    ShaderSourceKind,
    decode_ir,
    encode_ir,
)
from wren.assets.ir.mesh import (
    Bounds,
    IRMesh,
    IRSubMesh,
    SampleType,
    VertexField,
    VertexLayoutItem,
)
from wren.assets.ir.notes import Idle, NoteOff, NoteOn
from wren.assets.ir.texture import PixelFormat
from wren.assets.serializer import U32_MAX, BinaryReader, BinaryWriter
from wren.assets.types import AssetChecksum, AssetHeader, AssetID, AssetType
from wren.errors import DeserializationError, SerializationError, SizeOverflow


def test_u32_overflow_is_reported():
    w = BinaryWriter()
    with pytest.raises(SizeOverflow):
        w.u32(U32_MAX + 1)


def test_negative_unsigned_is_a_serialization_error():
    w = BinaryWriter()
    with pytest.raises(SerializationError):
        w.u8(-1)


def test_reader_refuses_to_read_past_the_end():
    w = BinaryWriter()
    w.u32(10)
    w.bytes(b"abc")
    r = BinaryReader(w.getvalue())
    assert r.u32() == 10
    assert r.bytes() == b"abc"
    with pytest.raises(DeserializationError, match="Unexpected end"):
        r.u8()


def test_trailing_bytes_after_ir_are_rejected():
    data = encode_ir(IRBlob(b"abc")) + b"\x00"
    with pytest.raises(DeserializationError, match="trailing"):
        decode_ir(data)


def test_unknown_ir_kind_is_rejected():
    with pytest.raises(DeserializationError):
        decode_ir(b"\xfe")


def test_payload_that_breaks_its_invariants_is_a_decode_error():
    w = BinaryWriter()
    w.u8(AssetType.AUDIO)
    w.u32(44100)
    w.u8(2)
    w.bytes(b"\x00" * 6)  # not a whole frame
    with pytest.raises(DeserializationError):
        decode_ir(w.getvalue())


def test_header_round_trip_keeps_order_of_tags_and_dependencies():
    header = AssetHeader(
        id=AssetID("hero"),
        asset_type=AssetType.MESH,
        tags=("level1", "characters"),
        checksum=AssetChecksum.from_bytes(b"\x01" * 32),
        dependencies=(
            AssetID("hero_mat"),
            AssetID("hero_tex"),
            AssetID("hero_mat"),
        ),
        license="CC0",
    )
    w = BinaryWriter()
    header.write(w)
    decoded = AssetHeader.read(BinaryReader(w.getvalue()))
    assert decoded == header
    assert decoded.dependencies == ("hero_mat", "hero_tex")
    assert len(decoded.checksum.digest) == 16


def test_dictionary_keeps_bools_apart_from_ints():
    ir = IRDictionary(
        {"flag": True, "count": 1, "ratio": 0.5, "nested": {"xs": [1, "a"]}}
    )
    decoded = decode_ir(encode_ir(ir))
    assert decoded.entries["flag"] is True
    assert decoded.entries["count"] == 1 and decoded.entries["count"] is not True
    assert decoded.entries["nested"] == {"xs": [1, "a"]}


def test_dictionary_rejects_unsupported_values():
    with pytest.raises(SerializationError):
        encode_ir(IRDictionary({"bad": object()}))


def test_notes_events():
    ir = IRNotes((NoteOn(0, 60, 100), Idle(250.0), NoteOff(0, 60)))
    assert decode_ir(encode_ir(ir)) == ir


def test_audio_samples_view():
    samples = np.array([[0.0, 0.5], [-0.5, 1.0], [0.25, 0.25]], dtype=np.float32)
    ir = IRAudio.from_samples(samples, 22050)
    assert ir.channels == 2
    assert ir.length == 3
    decoded = decode_ir(encode_ir(ir))
    np.testing.assert_array_equal(decoded.samples(), samples)
    assert decoded.sample_rate == 22050


def test_texture_data_size_is_validated():
    with pytest.raises(ValueError, match="needs 16 bytes"):
        IRTexture(data=b"\x00" * 15, width=2, height=2)
    IRTexture(data=b"\x00" * 4, width=2, height=2, pixel_format=PixelFormat.R8)


def test_mesh_with_material():
    layout = (VertexLayoutItem(VertexField.POSITION, SampleType.F32, 3, 12, 0),)
    sub = IRSubMesh(
        vertices=np.zeros(9, dtype="<f4").tobytes(),
        indices=np.array([0, 1, 2], dtype="<u4").tobytes(),
        layout=layout,
        bounds=Bounds((0.0, 0.0, 0.0), (1.0, 1.0, 0.0)),
        material=AssetID("stone"),
    )
    mesh = IRMesh(submeshes=(sub,), bounds=sub.bounds)
    decoded = decode_ir(encode_ir(mesh))
    assert decoded == mesh
    assert decoded.submeshes[0].vertex_count == 3
    assert decoded.submeshes[0].index_count == 3
    assert decoded.materials() == ("stone",)


def test_memory_usage_counts_owned_buffers_and_referenced_ids():
    shader = IRShader(
        sources={ShaderSourceKind.VERTEX: b"1234", ShaderSourceKind.FRAGMENT: b"56"},
        compile_options=("abc",),
    )
    assert shader.memory_usage().ram == 4 + 2 + 3

    plain = IRMaterial()
    textured = IRMaterial(base_color_texture=AssetID("brick"))
    assert textured.memory_usage().ram == plain.memory_usage().ram + len("brick")

    assert IRBlob(b"12345").memory_usage().ram == 5
