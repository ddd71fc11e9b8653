# wren/pipeline/user.py
"""
Author-facing asset definitions.

Each ``*.toml`` file describes one asset: a ``[header]`` table shared by all
kinds and a ``[properties]`` table whose shape depends on
``header.asset_type``. The asset id is derived from the file name.
"""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from wren.assets.ir.dictionary import DictValue
from wren.assets.ir.notes import Idle, NoteEvent, NoteOff, NoteOn
from wren.assets.ir.shader import ShaderSourceKind
from wren.assets.ir.texture import (
    PixelFormat,
    Sampling,
    TextureFilter,
    TextureType,
    TextureWrap,
)
from wren.assets.types import AssetID, AssetType
from wren.pipeline.config import NO_HASH
from wren.pipeline.errors import UserAssetParseError
from wren.pipeline.source import SourceRef, parse_source

_NOT_ALLOWED = re.compile(r"[^\w]")


def normalize_name(path: Path) -> AssetID:
    """
    File stem, lower case, with dots and spaces turned into underscores and
    anything else that is not alphanumeric dropped.
    """
    name = path.stem.lower().replace(".", "_").replace(" ", "_")
    return AssetID(_NOT_ALLOWED.sub("", name))


@dataclass(frozen=True)
class UserAssetHeader:
    asset_type: AssetType
    dependencies: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    author: Optional[str] = None
    license: Optional[str] = None


@dataclass(frozen=True)
class ShaderSourceDef:
    kind: ShaderSourceKind
    code: Optional[str] = None
    source: Optional[SourceRef] = None


@dataclass(frozen=True)
class ShaderProperties:
    sources: Tuple[ShaderSourceDef, ...]
    compile_options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TextureProperties:
    # several sources stack into layers (2D array) or slices (3D)
    sources: Tuple[SourceRef, ...]
    texture_type: TextureType = TextureType.TEXTURE_2D
    pixel_format: PixelFormat = PixelFormat.RGBA8
    sampling: Sampling = Sampling()


@dataclass(frozen=True)
class TextureCubeProperties:
    cross: Optional[SourceRef] = None
    # right, left, top, bottom, front, back
    faces: Tuple[SourceRef, ...] = ()
    pixel_format: PixelFormat = PixelFormat.RGBA8
    sampling: Sampling = Sampling()


@dataclass(frozen=True)
class AudioProperties:
    source: SourceRef
    sample_rate: Optional[int] = None
    channels: Optional[int] = None


@dataclass(frozen=True)
class MeshProperties:
    source: SourceRef
    gen_material: bool = False


@dataclass(frozen=True)
class MaterialProperties:
    base_color_factor: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    base_color_texture: Optional[str] = None
    metallic_roughness_texture: Optional[str] = None
    normal_texture: Optional[str] = None
    occlusion_texture: Optional[str] = None


@dataclass(frozen=True)
class NotesProperties:
    events: Tuple[NoteEvent, ...] = ()


@dataclass(frozen=True)
class BlobProperties:
    source: SourceRef


@dataclass(frozen=True)
class DictionaryProperties:
    entries: Dict[str, DictValue] = field(default_factory=dict)


UserAssetProperties = Union[
    ShaderProperties,
    TextureProperties,
    TextureCubeProperties,
    AudioProperties,
    MeshProperties,
    MaterialProperties,
    NotesProperties,
    BlobProperties,
    DictionaryProperties,
]


@dataclass(frozen=True)
class UserAsset:
    id: AssetID
    header: UserAssetHeader
    properties: UserAssetProperties
    # where the definition lives; relative sources resolve against its parent
    path: Path = field(default=Path("."), metadata=NO_HASH)

    @property
    def directory(self) -> Path:
        return self.path.parent


def _enum(enum_cls, props: Dict[str, Any], key: str, default):
    if key not in props:
        return default
    return enum_cls.parse(str(props[key]))


def _sampling(props: Dict[str, Any]) -> Sampling:
    return Sampling(
        use_mipmaps=bool(props.get("use_mipmaps", False)),
        min_filter=_enum(TextureFilter, props, "min_filter", TextureFilter.NEAREST),
        mag_filter=_enum(TextureFilter, props, "mag_filter", TextureFilter.NEAREST),
        wrap_s=_enum(TextureWrap, props, "wrap_s", TextureWrap.CLAMP_TO_EDGE),
        wrap_t=_enum(TextureWrap, props, "wrap_t", TextureWrap.CLAMP_TO_EDGE),
        wrap_r=_enum(TextureWrap, props, "wrap_r", TextureWrap.CLAMP_TO_EDGE),
    )


def _parse_shader(props: Dict[str, Any]) -> ShaderProperties:
    sources = []
    for entry in props.get("sources", []):
        kind = ShaderSourceKind.parse(entry["kind"])
        if "code" in entry:
            sources.append(ShaderSourceDef(kind, code=str(entry["code"])))
        else:
            rest = {k: v for k, v in entry.items() if k != "kind"}
            sources.append(ShaderSourceDef(kind, source=parse_source(rest)))
    if not sources:
        raise ValueError("shader needs at least one source")
    return ShaderProperties(
        sources=tuple(sources),
        compile_options=tuple(props.get("compile_options", ())),
    )


def _parse_texture(props: Dict[str, Any]) -> TextureProperties:
    if "sources" in props:
        sources = tuple(parse_source(s) for s in props["sources"])
    else:
        sources = (parse_source(props["source"]),)
    return TextureProperties(
        sources=sources,
        texture_type=_enum(TextureType, props, "texture_type", TextureType.TEXTURE_2D),
        pixel_format=_enum(PixelFormat, props, "pixel_format", PixelFormat.RGBA8),
        sampling=_sampling(props),
    )


def _parse_texture_cube(props: Dict[str, Any]) -> TextureCubeProperties:
    cross = parse_source(props["cross"]) if "cross" in props else None
    faces = tuple(parse_source(f) for f in props.get("faces", ()))
    if (cross is None) == (not faces):
        raise ValueError("texture cube needs exactly one of 'cross' or 'faces'")
    if faces and len(faces) != 6:
        raise ValueError(f"texture cube needs 6 faces, got {len(faces)}")
    return TextureCubeProperties(
        cross=cross,
        faces=faces,
        pixel_format=_enum(PixelFormat, props, "pixel_format", PixelFormat.RGBA8),
        sampling=_sampling(props),
    )


def _parse_audio(props: Dict[str, Any]) -> AudioProperties:
    return AudioProperties(
        source=parse_source(props["source"]),
        sample_rate=props.get("sample_rate"),
        channels=props.get("channels"),
    )


def _parse_mesh(props: Dict[str, Any]) -> MeshProperties:
    return MeshProperties(
        source=parse_source(props["source"]),
        gen_material=bool(props.get("gen_material", False)),
    )


def _parse_material(props: Dict[str, Any]) -> MaterialProperties:
    color = tuple(float(c) for c in props.get("base_color_factor", (1, 1, 1, 1)))
    if len(color) != 4:
        raise ValueError("base_color_factor needs 4 components")
    return MaterialProperties(
        base_color_factor=color,
        metallic_factor=float(props.get("metallic_factor", 1.0)),
        roughness_factor=float(props.get("roughness_factor", 1.0)),
        base_color_texture=props.get("base_color_texture"),
        metallic_roughness_texture=props.get("metallic_roughness_texture"),
        normal_texture=props.get("normal_texture"),
        occlusion_texture=props.get("occlusion_texture"),
    )


def _parse_note(entry: Dict[str, Any]) -> NoteEvent:
    if "on" in entry:
        channel, note, velocity = entry["on"]
        return NoteOn(int(channel), int(note), int(velocity))
    if "off" in entry:
        channel, note = entry["off"]
        return NoteOff(int(channel), int(note))
    if "idle" in entry:
        return Idle(float(entry["idle"]))
    raise ValueError(f"unknown note event {entry!r}")


def _parse_notes(props: Dict[str, Any]) -> NotesProperties:
    events = tuple(_parse_note(e) for e in props.get("events", ()))
    return NotesProperties(events=events)


def _parse_blob(props: Dict[str, Any]) -> BlobProperties:
    return BlobProperties(source=parse_source(props["source"]))


def _parse_dictionary(props: Dict[str, Any]) -> DictionaryProperties:
    return DictionaryProperties(entries=dict(props.get("entries", {})))


_PARSERS: Dict[AssetType, Callable[[Dict[str, Any]], UserAssetProperties]] = {
    AssetType.SHADER: _parse_shader,
    AssetType.TEXTURE: _parse_texture,
    AssetType.TEXTURE_CUBE: _parse_texture_cube,
    AssetType.AUDIO: _parse_audio,
    AssetType.MESH: _parse_mesh,
    AssetType.MATERIAL: _parse_material,
    AssetType.NOTES: _parse_notes,
    AssetType.BLOB: _parse_blob,
    AssetType.DICTIONARY: _parse_dictionary,
}


def parse_user_asset(path: Path) -> UserAsset:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise UserAssetParseError(path, str(e)) from e

    try:
        raw_header = data["header"]
        asset_type = AssetType.parse(str(raw_header["asset_type"]))
        header = UserAssetHeader(
            asset_type=asset_type,
            dependencies=tuple(dict.fromkeys(raw_header.get("dependencies", ()))),
            tags=tuple(dict.fromkeys(raw_header.get("tags", ()))),
            author=raw_header.get("author"),
            license=raw_header.get("license"),
        )
        parser = _PARSERS.get(asset_type)
        if parser is None:
            raise ValueError(f"no definition format for {asset_type.name} assets")
        properties = parser(data.get("properties", {}))
    except KeyError as e:
        raise UserAssetParseError(path, f"missing key {e}") from e
    except (TypeError, ValueError) as e:
        raise UserAssetParseError(path, str(e)) from e

    return UserAsset(
        id=normalize_name(path), header=header, properties=properties, path=path
    )
