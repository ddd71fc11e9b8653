from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetID, AssetMemoryUsage, AssetType

Vec3 = Tuple[float, float, float]

INDEX_SIZE = 4  # u32 indices


class VertexField(enum.IntEnum):
    POSITION = 0
    NORMAL = 1
    TANGENT = 2
    TEX_COORD = 3
    COLOR = 4


class SampleType(enum.IntEnum):
    F32 = 0
    U8 = 1
    U16 = 2
    U32 = 3


class Topology(enum.IntEnum):
    TRIANGLES = 0
    LINES = 1
    POINTS = 2


@dataclass(frozen=True)
class VertexLayoutItem:
    field: VertexField
    sample_type: SampleType
    samples: int  # components per vertex, e.g. 3 for a position
    stride: int  # bytes per whole vertex
    offset: int  # bytes from vertex start

    def write(self, w: BinaryWriter) -> None:
        w.u8(self.field)
        w.u8(self.sample_type)
        w.u8(self.samples)
        w.u32(self.stride)
        w.u32(self.offset)

    @classmethod
    def read(cls, r: BinaryReader) -> VertexLayoutItem:
        return cls(
            field=r.enum(VertexField),
            sample_type=r.enum(SampleType),
            samples=r.u8(),
            stride=r.u32(),
            offset=r.u32(),
        )


@dataclass(frozen=True)
class Bounds:
    min: Vec3 = (0.0, 0.0, 0.0)
    max: Vec3 = (0.0, 0.0, 0.0)

    def union(self, other: Bounds) -> Bounds:
        return Bounds(
            min=(
                min(self.min[0], other.min[0]),
                min(self.min[1], other.min[1]),
                min(self.min[2], other.min[2]),
            ),
            max=(
                max(self.max[0], other.max[0]),
                max(self.max[1], other.max[1]),
                max(self.max[2], other.max[2]),
            ),
        )

    def write(self, w: BinaryWriter) -> None:
        for v in self.min + self.max:
            w.f32(v)

    @classmethod
    def read(cls, r: BinaryReader) -> Bounds:
        lo = (r.f32(), r.f32(), r.f32())
        hi = (r.f32(), r.f32(), r.f32())
        return cls(min=lo, max=hi)


@dataclass(frozen=True)
class IRSubMesh:
    vertices: bytes
    indices: bytes
    layout: Tuple[VertexLayoutItem, ...]
    bounds: Bounds = Bounds()
    topology: Topology = Topology.TRIANGLES
    material: Optional[AssetID] = None

    @property
    def stride(self) -> int:
        return self.layout[0].stride if self.layout else 0

    @property
    def vertex_count(self) -> int:
        return len(self.vertices) // self.stride if self.stride else 0

    @property
    def index_count(self) -> int:
        return len(self.indices) // INDEX_SIZE

    def write(self, w: BinaryWriter) -> None:
        w.u32(len(self.layout))
        for item in self.layout:
            item.write(w)
        w.u8(self.topology)
        self.bounds.write(w)
        w.optional_str(self.material)
        w.bytes(self.vertices)
        w.bytes(self.indices)

    @classmethod
    def read(cls, r: BinaryReader) -> IRSubMesh:
        layout = tuple(r.list(VertexLayoutItem.read))
        topology = r.enum(Topology)
        bounds = Bounds.read(r)
        material = r.optional_str()
        vertices = r.bytes()
        indices = r.bytes()
        return cls(
            vertices=vertices,
            indices=indices,
            layout=layout,
            bounds=bounds,
            topology=topology,
            material=AssetID(material) if material is not None else None,
        )


@dataclass(frozen=True)
class IRMesh:
    KIND: ClassVar[AssetType] = AssetType.MESH

    submeshes: Tuple[IRSubMesh, ...] = ()
    bounds: Bounds = Bounds()

    def materials(self) -> Tuple[AssetID, ...]:
        seen = dict.fromkeys(s.material for s in self.submeshes if s.material)
        return tuple(seen)

    def memory_usage(self) -> AssetMemoryUsage:
        ram = 0
        for sub in self.submeshes:
            ram += len(sub.vertices) + len(sub.indices)
            if sub.material is not None:
                ram += len(sub.material.encode("utf-8"))
        return AssetMemoryUsage(ram=ram)

    def write(self, w: BinaryWriter) -> None:
        self.bounds.write(w)
        w.u32(len(self.submeshes))
        for sub in self.submeshes:
            sub.write(w)

    @classmethod
    def read(cls, r: BinaryReader) -> IRMesh:
        bounds = Bounds.read(r)
        submeshes = tuple(r.list(IRSubMesh.read))
        return cls(submeshes=submeshes, bounds=bounds)
