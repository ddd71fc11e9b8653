# wren/assets/ir/__init__.py
"""
Intermediate representation: the normalized, engine-facing form of every
asset kind. Each payload knows its ``KIND``, its ``memory_usage()`` and its
binary encoding.
"""

from typing import Dict, Type, Union

from wren.assets.ir.audio import IRAudio
from wren.assets.ir.blob import IRBlob, IRUnknown
from wren.assets.ir.dictionary import IRDictionary
from wren.assets.ir.material import IRMaterial
from wren.assets.ir.mesh import IRMesh, IRSubMesh
from wren.assets.ir.notes import IRNotes
from wren.assets.ir.shader import IRShader, ShaderSourceKind
from wren.assets.ir.texture import IRTexture
from wren.assets.ir.texture_cube import IRTextureCube
from wren.assets.serializer import BinaryReader, BinaryWriter
from wren.assets.types import AssetType
from wren.errors import DeserializationError

IRAsset = Union[
    IRUnknown,
    IRShader,
    IRAudio,
    IRTexture,
    IRNotes,
    IRMesh,
    IRMaterial,
    IRBlob,
    IRDictionary,
    IRTextureCube,
]

IR_TYPES: Dict[AssetType, Type] = {
    cls.KIND: cls
    for cls in (
        IRUnknown,
        IRShader,
        IRAudio,
        IRTexture,
        IRNotes,
        IRMesh,
        IRMaterial,
        IRBlob,
        IRDictionary,
        IRTextureCube,
    )
}


def encode_ir(ir: IRAsset) -> bytes:
    w = BinaryWriter()
    w.u8(ir.KIND)
    ir.write(w)
    return w.getvalue()


def decode_ir(data: bytes) -> IRAsset:
    r = BinaryReader(data)
    kind = r.enum(AssetType)
    try:
        ir = IR_TYPES[kind].read(r)
    except ValueError as e:
        # payload decoded but failed its own invariants
        raise DeserializationError(f"Invalid {kind.name} payload: {e}") from e
    r.expect_end()
    return ir


__all__ = [
    "IRAsset",
    "IRAudio",
    "IRBlob",
    "IRDictionary",
    "IRMaterial",
    "IRMesh",
    "IRNotes",
    "IRShader",
    "IRSubMesh",
    "IRTexture",
    "IRTextureCube",
    "IRUnknown",
    "IR_TYPES",
    "ShaderSourceKind",
    "decode_ir",
    "encode_ir",
]
