import struct

import numpy as np
import pytest
import soundfile as sf
from PIL import Image

from wren.assets.ir import IRBlob, IRMaterial, IRMesh
from wren.assets.ir.mesh import INDEX_SIZE
from wren.assets.ir.shader import ShaderSourceKind
from wren.assets.ir.texture import PixelFormat, TextureType
from wren.assets.ir.texture_cube import CubeFace
from wren.assets.types import AssetType
from wren.pipeline import importers
from wren.pipeline.errors import ConversionError, SourceError
from wren.pipeline.importers import AssetImporter, ImportContext, convert
from wren.pipeline.importers.mesh import STRIDE, material_id
from wren.pipeline.importers.texture import pack_pixels
from wren.pipeline.source import FileSource
from wren.pipeline.user import parse_user_asset


@pytest.fixture
def ctx(tmp_path):
    return ImportContext(cache_dir=tmp_path / "cache")


def simple(define, name, asset_type, key, value):
    """One-line definition: ``[properties] key = "value"``."""
    body = f'[header]\nasset_type = "{asset_type}"\n[properties]\n{key} = "{value}"\n'
    return parse_user_asset(define(f"{name}.toml", body))


def only_ir(asset, ctx):
    (partial,) = convert(asset, ctx)
    assert partial.id == asset.id
    return partial.ir


def test_obj_importer_simple_triangle(define, assets_dir, ctx):
    (assets_dir / "triangle.obj").write_text(
        """
        v 0.0 0.0 0.0
        v 1.0 0.0 0.0
        v 0.0 1.0 0.0
        vn 0.0 0.0 1.0
        vt 0.0 0.0
        f 1/1/1 2/1/1 3/1/1
        """
    )
    asset = simple(define, "triangle", "mesh", "source", "triangle.obj")
    mesh = only_ir(asset, ctx)

    assert isinstance(mesh, IRMesh)
    (sub,) = mesh.submeshes
    # 3 vertices * (3 pos + 3 norm + 2 uv) * 4 bytes/float = 96 bytes
    assert len(sub.vertices) == 96
    assert sub.stride == STRIDE == 32
    assert len(sub.indices) == 3 * INDEX_SIZE
    assert mesh.bounds.min == (0.0, 0.0, 0.0)
    assert mesh.bounds.max == (1.0, 1.0, 0.0)


def test_obj_quads_are_triangulated_and_vertices_shared(define, assets_dir, ctx):
    (assets_dir / "quad.obj").write_text(
        "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\nf 1 2 3 4\n"
    )
    asset = simple(define, "quad", "mesh", "source", "quad.obj")
    (sub,) = only_ir(asset, ctx).submeshes
    assert sub.vertex_count == 4
    indices = struct.unpack(f"<{sub.index_count}I", sub.indices)
    assert indices == (0, 1, 2, 0, 2, 3)


def test_obj_importer_invalid_file(define, assets_dir, ctx):
    (assets_dir / "empty.obj").write_text("")
    asset = simple(define, "empty", "mesh", "source", "empty.obj")
    with pytest.raises(ConversionError, match="No geometry found"):
        convert(asset, ctx)


def test_obj_materials_are_generated(define, assets_dir, ctx):
    (assets_dir / "crate.mtl").write_text(
        "newmtl wood\nKd 0.5 0.25 0.0\nd 0.5\n\nnewmtl metal\nKd 0.8 0.8 0.8\nPm 1.0\n"
    )
    (assets_dir / "crate.obj").write_text(
        "mtllib crate.mtl\n"
        "v 0 0 0\nv 1 0 0\nv 0 1 0\nv 0 0 1\n"
        "usemtl wood\nf 1 2 3\n"
        "usemtl metal\nf 1 3 4\n"
    )
    asset = parse_user_asset(
        define(
            "crate.toml",
            """
            [header]
            asset_type = "mesh"
            dependencies = ["crate_shader"]

            [properties]
            source = "crate.obj"
            gen_material = true
            """,
        )
    )
    partials = convert(asset, ctx)
    by_id = {p.id: p for p in partials}

    wood, metal = material_id("crate", "wood"), material_id("crate", "metal")
    assert wood == "_crate_wood_material"
    assert set(by_id) == {"crate", wood, metal}

    assert by_id[wood].header.asset_type == AssetType.MATERIAL
    assert by_id[wood].header.author == "Auto-generated"
    assert by_id[wood].ir == IRMaterial(base_color_factor=(0.5, 0.25, 0.0, 0.5))
    assert by_id[metal].ir.metallic_factor == 1.0

    mesh = by_id["crate"]
    assert mesh.header.dependencies == ("crate_shader", wood, metal)
    assert [s.material for s in mesh.ir.submeshes] == [wood, metal]


def test_texture_importer_png(define, assets_dir, ctx):
    Image.new("RGB", (2, 2), color="red").save(assets_dir / "red.png")
    asset = simple(define, "red", "texture", "source", "red.png")
    tex = only_ir(asset, ctx)

    assert tex.width == 2
    assert tex.height == 2
    assert tex.pixel_format == PixelFormat.RGBA8  # always converted to RGBA
    assert tex.data == bytes([255, 0, 0, 255]) * 4


def test_texture_layers_must_match(define, assets_dir, ctx):
    Image.new("RGBA", (2, 2)).save(assets_dir / "a.png")
    Image.new("RGBA", (4, 4)).save(assets_dir / "b.png")
    asset = parse_user_asset(
        define(
            "layers.toml",
            """
            [header]
            asset_type = "texture"

            [properties]
            sources = ["a.png", "b.png"]
            texture_type = "texture_2d_array"
            """,
        )
    )
    with pytest.raises(ConversionError, match="differs"):
        convert(asset, ctx)


def test_texture_array_stacks_layers(define, assets_dir, ctx):
    Image.new("L", (2, 1), color=10).save(assets_dir / "a.png")
    Image.new("L", (2, 1), color=20).save(assets_dir / "b.png")
    asset = parse_user_asset(
        define(
            "layers.toml",
            """
            [header]
            asset_type = "texture"

            [properties]
            sources = ["a.png", "b.png"]
            texture_type = "texture_2d_array"
            pixel_format = "r8"
            """,
        )
    )
    tex = only_ir(asset, ctx)
    assert tex.texture_type == TextureType.TEXTURE_2D_ARRAY
    assert tex.depth == 2
    assert tex.data == bytes([10, 10, 20, 20])


def test_pixel_format_packing():
    rgba = np.array([[[255, 128, 0, 255]]], dtype=np.uint8)
    assert pack_pixels(rgba, PixelFormat.RGB8) == bytes([255, 128, 0])
    assert pack_pixels(rgba, PixelFormat.R16) == struct.pack("<H", 65535)
    assert pack_pixels(rgba, PixelFormat.RGBA16) == struct.pack(
        "<4H", 65535, 128 * 257, 0, 65535
    )
    assert struct.unpack("<f", pack_pixels(rgba, PixelFormat.R32F)) == (1.0,)


def test_cube_from_cross(define, assets_dir, ctx):
    size = 2
    cross = Image.new("RGBA", (4 * size, 3 * size))
    # paint the front face (column 1, row 1) white
    for x in range(size, 2 * size):
        for y in range(size, 2 * size):
            cross.putpixel((x, y), (255, 255, 255, 255))
    cross.save(assets_dir / "sky.png")
    asset = simple(define, "sky", "texture_cube", "cross", "sky.png")
    cube = only_ir(asset, ctx)
    assert cube.size == size
    assert cube.face(CubeFace.FRONT) == b"\xff" * (size * size * 4)
    assert cube.face(CubeFace.BACK) == b"\x00" * (size * size * 4)


def test_cube_cross_must_be_four_by_three(define, assets_dir, ctx):
    Image.new("RGBA", (8, 8)).save(assets_dir / "square.png")
    asset = simple(define, "sky", "texture_cube", "cross", "square.png")
    with pytest.raises(ConversionError, match="4:3"):
        convert(asset, ctx)


def test_shader_importer_resolves_includes(define, assets_dir, ctx):
    shaders = assets_dir / "shaders"
    shaders.mkdir()
    (shaders / "common.glsl").write_text("float helper() { return 1.0; }\n")
    (shaders / "lit.frag").write_text(
        '#version 330 core\n#include "common.glsl"\nvoid main() {}\n'
    )
    asset = parse_user_asset(
        define(
            "lit.toml",
            """
            [header]
            asset_type = "shader"

            [[properties.sources]]
            kind = "fragment"
            file = "shaders/lit.frag"

            [[properties.sources]]
            kind = "vertex"
            code = "void main() {}"
            """,
        )
    )
    shader = only_ir(asset, ctx)
    fragment = shader.sources[ShaderSourceKind.FRAGMENT].decode()
    assert fragment.splitlines() == [
        "#version 330 core",
        "float helper() { return 1.0; }",
        "#line 3",
        "void main() {}",
    ]
    assert shader.sources[ShaderSourceKind.VERTEX] == b"void main() {}"


def test_shader_include_cycle(define, assets_dir, ctx):
    (assets_dir / "a.glsl").write_text('#include "b.glsl"\n')
    (assets_dir / "b.glsl").write_text('#include "a.glsl"\n')
    asset = parse_user_asset(
        define(
            "loop.toml",
            """
            [header]
            asset_type = "shader"

            [[properties.sources]]
            kind = "compute"
            file = "a.glsl"
            """,
        )
    )
    with pytest.raises(ConversionError, match="Circular #include"):
        convert(asset, ctx)


def test_audio_importer(define, assets_dir, ctx):
    frames = np.linspace(-1.0, 1.0, 100, dtype=np.float32)
    stereo = np.stack([frames, frames * 0.5], axis=1)
    sf.write(str(assets_dir / "beep.wav"), stereo, 8000, subtype="FLOAT")
    asset = parse_user_asset(
        define(
            "beep.toml",
            """
            [header]
            asset_type = "audio"

            [properties]
            source = "beep.wav"
            sample_rate = 8000
            """,
        )
    )
    audio = only_ir(asset, ctx)
    assert audio.sample_rate == 8000
    assert audio.channels == 2
    assert audio.length == 100
    np.testing.assert_allclose(audio.samples(), stereo)


def test_audio_sample_rate_mismatch(define, assets_dir, ctx):
    sf.write(str(assets_dir / "beep.wav"), np.zeros(10, dtype=np.float32), 8000)
    asset = parse_user_asset(
        define(
            "beep.toml",
            """
            [header]
            asset_type = "audio"

            [properties]
            source = "beep.wav"
            sample_rate = 44100
            """,
        )
    )
    with pytest.raises(ConversionError, match="44100"):
        convert(asset, ctx)


def test_material_textures_become_dependencies(define, ctx):
    asset = parse_user_asset(
        define(
            "stone.toml",
            """
            [header]
            asset_type = "material"

            [properties]
            base_color_texture = "stone_albedo"
            normal_texture = "stone_normal"
            """,
        )
    )
    (partial,) = convert(asset, ctx)
    assert partial.header.dependencies == ("stone_albedo", "stone_normal")


def test_blob_dictionary_and_notes(define, assets_dir, ctx):
    (assets_dir / "data.bin").write_bytes(b"\x01\x02\x03")
    blob = simple(define, "data", "blob", "source", "data.bin")
    assert only_ir(blob, ctx).data == b"\x01\x02\x03"

    strings = parse_user_asset(
        define(
            "strings.toml",
            """
            [header]
            asset_type = "dictionary"

            [properties.entries]
            title = "Wren"
            lives = 3
            """,
        )
    )
    assert only_ir(strings, ctx).entries == {"title": "Wren", "lives": 3}

    tune = parse_user_asset(
        define(
            "tune.toml",
            '[header]\nasset_type = "notes"\n[properties]\nevents = [{ idle = 5 }]\n',
        )
    )
    assert len(only_ir(tune, ctx).events) == 1


def test_missing_source_file(define, ctx):
    asset = simple(define, "gone", "blob", "source", "gone.bin")
    with pytest.raises(SourceError):
        convert(asset, ctx)


class UpperBlobImporter(AssetImporter):
    def import_asset(self, asset, ctx):
        data = ctx.read(asset.properties.source, asset)
        return self.single(asset, IRBlob(data.upper()))

    def referenced_files(self, asset):
        return [FileSource("extra.txt")]


def test_registered_importer_replaces_the_builtin(
    define, assets_dir, ctx, monkeypatch
):
    monkeypatch.setattr(importers, "IMPORTERS", dict(importers.IMPORTERS))
    (assets_dir / "shout.txt").write_bytes(b"hello")
    asset = simple(define, "shout", "blob", "source", "shout.txt")

    importers.register_importer(AssetType.BLOB, UpperBlobImporter())
    assert only_ir(asset, ctx).data == b"HELLO"
    assert importers.referenced_files(asset) == [FileSource("extra.txt")]


def test_asset_type_without_importer(define, assets_dir, ctx, monkeypatch):
    monkeypatch.setattr(importers, "IMPORTERS", dict(importers.IMPORTERS))
    (assets_dir / "data.bin").write_bytes(b"\x00")
    asset = simple(define, "data", "blob", "source", "data.bin")
    del importers.IMPORTERS[AssetType.BLOB]

    assert importers.referenced_files(asset) == []
    with pytest.raises(ConversionError, match="No importer for BLOB"):
        convert(asset, ctx)
