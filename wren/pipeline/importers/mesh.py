# wren/pipeline/importers/mesh.py
from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from wren.assets.ir.material import IRMaterial
from wren.assets.ir.mesh import (
    Bounds,
    IRMesh,
    IRSubMesh,
    SampleType,
    Topology,
    VertexField,
    VertexLayoutItem,
)
from wren.assets.types import AssetID, AssetType
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.base import (
    AssetImporter,
    ImportContext,
    PartialIR,
    relative_source,
)
from wren.pipeline.source import FileSource
from wren.pipeline.user import MeshProperties, UserAsset, UserAssetHeader

VERTEX_FORMAT = struct.Struct("<3f 3f 2f")
STRIDE = VERTEX_FORMAT.size

VERTEX_LAYOUT = (
    VertexLayoutItem(VertexField.POSITION, SampleType.F32, 3, STRIDE, 0),
    VertexLayoutItem(VertexField.NORMAL, SampleType.F32, 3, STRIDE, 12),
    VertexLayoutItem(VertexField.TEX_COORD, SampleType.F32, 2, STRIDE, 24),
)

GENERATED_AUTHOR = "Auto-generated"

Vec3 = Tuple[float, float, float]
FaceVertex = Tuple[int, Optional[int], Optional[int]]


def material_id(mesh_id: str, name: str) -> AssetID:
    return AssetID(f"_{mesh_id}_{name}_material")


@dataclass
class _Group:
    """Faces sharing one ``usemtl``; becomes a submesh."""

    material: Optional[str]
    vertices: List[bytes] = field(default_factory=list)
    indices: List[int] = field(default_factory=list)
    lookup: Dict[FaceVertex, int] = field(default_factory=dict)
    lo: List[float] = field(default_factory=lambda: [float("inf")] * 3)
    hi: List[float] = field(default_factory=lambda: [float("-inf")] * 3)


@dataclass
class ObjData:
    groups: List[_Group]
    material_libs: List[str]


def parse_obj(text: str, origin: Path) -> ObjData:
    positions: List[Vec3] = []
    normals: List[Vec3] = []
    uvs: List[Tuple[float, float]] = []
    groups: List[_Group] = [_Group(material=None)]
    material_libs: List[str] = []

    for number, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        parts = line.split()
        tag = parts[0]

        try:
            if tag == "v":
                px, py, pz = map(float, parts[1:4])
                positions.append((px, py, pz))

            elif tag == "vn":
                nx, ny, nz = map(float, parts[1:4])
                normals.append((nx, ny, nz))

            elif tag == "vt":
                u, v = map(float, parts[1:3])
                uvs.append((u, v))

            elif tag == "usemtl":
                name = " ".join(parts[1:])
                current = groups[-1]
                if current.indices:
                    groups.append(_Group(material=name))
                else:
                    current.material = name

            elif tag == "mtllib":
                material_libs.extend(parts[1:])

            elif tag == "f":
                if len(parts) < 4:
                    raise ValueError("face needs at least 3 vertices")
                corners = [
                    _resolve(
                        _parse_face_vertex(p),
                        len(positions),
                        len(uvs),
                        len(normals),
                    )
                    for p in parts[1:]
                ]
                # triangle fan
                for i in range(1, len(corners) - 1):
                    for corner in (corners[0], corners[i], corners[i + 1]):
                        _emit(groups[-1], corner, positions, normals, uvs)
        except (ValueError, IndexError) as e:
            raise ValueError(f"{origin}:{number}: {e}") from e

    groups = [g for g in groups if g.indices]
    if not groups:
        raise ValueError(f"No geometry found in OBJ: {origin}")
    return ObjData(groups=groups, material_libs=material_libs)


def _parse_index(val: str) -> Optional[int]:
    if not val:
        return None
    return int(val)


def _parse_face_vertex(token: str) -> Tuple[int, Optional[int], Optional[int]]:
    parts = token.split("/")
    v = _parse_index(parts[0])
    vt = _parse_index(parts[1]) if len(parts) > 1 else None
    vn = _parse_index(parts[2]) if len(parts) > 2 else None
    if v is None:
        raise ValueError(f"Invalid vertex index in token: {token}")
    return v, vt, vn


def _resolve(
    corner: Tuple[int, Optional[int], Optional[int]],
    n_pos: int,
    n_uv: int,
    n_norm: int,
) -> FaceVertex:
    """OBJ indices are 1-based, negative ones count back from the end."""

    def fix(idx: Optional[int], count: int) -> Optional[int]:
        if idx is None:
            return None
        fixed = idx - 1 if idx > 0 else count + idx
        if not 0 <= fixed < count:
            raise IndexError(f"index {idx} out of range ({count} defined)")
        return fixed

    v, vt, vn = corner
    return fix(v, n_pos), fix(vt, n_uv), fix(vn, n_norm)  # type: ignore[return-value]


def _emit(
    group: _Group,
    corner: FaceVertex,
    positions: List[Vec3],
    normals: List[Vec3],
    uvs: List[Tuple[float, float]],
) -> None:
    index = group.lookup.get(corner)
    if index is None:
        v_idx, vt_idx, vn_idx = corner
        px, py, pz = positions[v_idx]
        nx, ny, nz = normals[vn_idx] if vn_idx is not None else (0.0, 1.0, 0.0)
        u, v = uvs[vt_idx] if vt_idx is not None else (0.0, 0.0)

        index = len(group.vertices)
        group.vertices.append(VERTEX_FORMAT.pack(px, py, pz, nx, ny, nz, u, v))
        group.lookup[corner] = index
        for axis, value in enumerate((px, py, pz)):
            group.lo[axis] = min(group.lo[axis], value)
            group.hi[axis] = max(group.hi[axis], value)
    group.indices.append(index)


def parse_mtl(text: str) -> Dict[str, IRMaterial]:
    """
    Diffuse colour (``Kd``), opacity (``d``) and the PBR extension's
    ``Pm``/``Pr`` factors. Texture maps are not carried over.
    """
    materials: Dict[str, IRMaterial] = {}
    name: Optional[str] = None
    for line in text.splitlines():
        parts = line.strip().split()
        if not parts or parts[0].startswith("#"):
            continue
        tag, args = parts[0], parts[1:]
        if tag == "newmtl":
            name = " ".join(args)
            materials[name] = IRMaterial()
        elif name is None:
            continue
        elif tag == "Kd":
            r, g, b = map(float, args[:3])
            alpha = materials[name].base_color_factor[3]
            materials[name] = replace(
                materials[name], base_color_factor=(r, g, b, alpha)
            )
        elif tag == "d":
            r, g, b, _ = materials[name].base_color_factor
            materials[name] = replace(
                materials[name], base_color_factor=(r, g, b, float(args[0]))
            )
        elif tag == "Pm":
            materials[name] = replace(materials[name], metallic_factor=float(args[0]))
        elif tag == "Pr":
            materials[name] = replace(materials[name], roughness_factor=float(args[0]))
    return materials


class ObjImporter(AssetImporter):
    """
    Wavefront OBJ to an indexed, interleaved pos/normal/uv mesh. Each
    ``usemtl`` run becomes a submesh. With ``gen_material`` the referenced
    ``.mtl`` materials are emitted as assets of their own.
    """

    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: MeshProperties = asset.properties
        path = ctx.fetch(props.source, asset)
        try:
            obj = parse_obj(path.read_text(encoding="utf-8"), path)
        except (OSError, ValueError) as e:
            raise ConversionError(asset.path, str(e)) from e

        library: Dict[str, IRMaterial] = {}
        if props.gen_material:
            for lib in obj.material_libs:
                lib_path = path.parent / lib
                try:
                    library.update(parse_mtl(lib_path.read_text(encoding="utf-8")))
                except (OSError, ValueError) as e:
                    raise ConversionError(
                        asset.path, f"Bad material library {lib_path}: {e}"
                    ) from e

        out: List[PartialIR] = []
        generated: Dict[AssetID, None] = {}
        submeshes = []
        for i, group in enumerate(obj.groups):
            mat: Optional[AssetID] = None
            if props.gen_material:
                mat = material_id(asset.id, group.material or str(i))
                if mat not in generated:
                    generated[mat] = None
                    ir = library.get(group.material or "", IRMaterial())
                    header = UserAssetHeader(
                        asset_type=AssetType.MATERIAL, author=GENERATED_AUTHOR
                    )
                    out.append(PartialIR(mat, header, ir))
            submeshes.append(
                IRSubMesh(
                    vertices=b"".join(group.vertices),
                    indices=struct.pack(f"<{len(group.indices)}I", *group.indices),
                    layout=VERTEX_LAYOUT,
                    bounds=Bounds(min=tuple(group.lo), max=tuple(group.hi)),
                    topology=Topology.TRIANGLES,
                    material=mat,
                )
            )

        bounds = submeshes[0].bounds
        for sub in submeshes[1:]:
            bounds = bounds.union(sub.bounds)

        header = asset.header
        if generated:
            header = replace(
                header,
                dependencies=tuple(dict.fromkeys((*header.dependencies, *generated))),
            )
        out.append(PartialIR(asset.id, header, IRMesh(tuple(submeshes), bounds)))
        return out

    def referenced_files(self, asset: UserAsset) -> List[FileSource]:
        props: MeshProperties = asset.properties
        if not props.gen_material or not isinstance(props.source, FileSource):
            return []
        path = props.source.resolve(asset.directory)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            return []
        libs = []
        for line in text.splitlines():
            parts = line.split()
            if parts and parts[0] == "mtllib":
                libs.extend(path.parent / lib for lib in parts[1:])
        return [relative_source(lib, asset) for lib in libs if lib.is_file()]
