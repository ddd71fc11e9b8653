# wren/pipeline/importers/shader.py
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from wren.assets.ir.shader import IRShader, ShaderSourceKind
from wren.pipeline.errors import ConversionError
from wren.pipeline.importers.base import (
    AssetImporter,
    ImportContext,
    PartialIR,
    relative_source,
)
from wren.pipeline.source import FileSource
from wren.pipeline.user import ShaderProperties, UserAsset

INCLUDE_DIRECTIVE = re.compile(r'^\s*#include\s+"([^"]+)"\s*$')


def _expand(text: str, base_dir: Path, stack: Sequence[Path]) -> List[str]:
    out: List[str] = []
    for number, line in enumerate(text.splitlines(), start=1):
        match = INCLUDE_DIRECTIVE.match(line)
        if match is None:
            out.append(line)
            continue

        include = (base_dir / match.group(1)).resolve()
        if include in stack:
            chain = " -> ".join(str(p) for p in [*stack, include])
            raise ValueError(f"Circular #include: {chain}")
        try:
            included = include.read_text(encoding="utf-8")
        except OSError as e:
            raise ValueError(f"Failed to read included shader {include}: {e}") from e

        out.extend(_expand(included, include.parent, [*stack, include]))
        out.append(f"#line {number + 1}")
    return out


def find_includes(text: str, base_dir: Path, found: List[Path]) -> None:
    """Append every readable file ``text`` includes, transitively, to ``found``."""
    for line in text.splitlines():
        match = INCLUDE_DIRECTIVE.match(line)
        if match is None:
            continue
        include = (base_dir / match.group(1)).resolve()
        if include in found:
            continue
        try:
            included = include.read_text(encoding="utf-8")
        except OSError:
            # preprocess() reports it
            continue
        found.append(include)
        find_includes(included, include.parent, found)


def preprocess(text: str, base_dir: Path, origin: Optional[Path] = None) -> str:
    """
    Inline ``#include "path"`` directives (relative to ``base_dir``), then
    reset the line counter so compiler errors point at the right line.
    """
    stack = [origin.resolve()] if origin is not None else []
    lines = _expand(text, base_dir, stack)
    return "\n".join(lines) + ("\n" if text.endswith("\n") else "")


class ShaderImporter(AssetImporter):
    def import_asset(self, asset: UserAsset, ctx: ImportContext) -> List[PartialIR]:
        props: ShaderProperties = asset.properties
        sources: Dict[ShaderSourceKind, bytes] = {}

        for source in props.sources:
            if source.kind in sources:
                raise ConversionError(
                    asset.path, f"Duplicate {source.kind.name.lower()} shader source"
                )
            origin: Optional[Path] = None
            if source.code is not None:
                text, base_dir = source.code, asset.directory
            else:
                path = ctx.fetch(source.source, asset)
                text = path.read_text(encoding="utf-8")
                if isinstance(source.source, FileSource):
                    base_dir, origin = path.parent, path
                else:
                    base_dir = asset.directory
            try:
                text = preprocess(text, base_dir, origin)
            except ValueError as e:
                raise ConversionError(asset.path, str(e)) from e
            sources[source.kind] = text.encode("utf-8")

        ir = IRShader(sources=sources, compile_options=props.compile_options)
        return self.single(asset, ir)

    def referenced_files(self, asset: UserAsset) -> List[FileSource]:
        props: ShaderProperties = asset.properties
        found: List[Path] = []
        for source in props.sources:
            if source.code is not None:
                find_includes(source.code, asset.directory, found)
            elif isinstance(source.source, FileSource):
                path = source.source.resolve(asset.directory)
                try:
                    text = path.read_text(encoding="utf-8")
                except OSError:
                    continue
                find_includes(text, path.parent, found)
        return [relative_source(p, asset) for p in found]
