"""In-memory source nodes and the directory boundary they are loaded from."""

from __future__ import annotations

import codecs
import os
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePath

SKIPPED_DIRECTORIES = {".git", ".vs", "bin", "obj", "node_modules", ".rewrite_dotnet"}


@dataclass(frozen=True)
class Annotation:
    """Non-fatal message attached to a node, e.g. an analysis finding."""

    message: str


@dataclass(frozen=True)
class SourceNode:
    source_path: PurePath
    content: str
    charset: str | None = None
    charset_bom_marked: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    annotations: tuple[Annotation, ...] = ()

    def with_content(self, content: str) -> SourceNode:
        return replace(self, content=content)

    def with_annotation(self, annotation: Annotation) -> SourceNode:
        return replace(self, annotations=self.annotations + (annotation,))


def node_codec(node: SourceNode) -> str:
    """Codec used to write ``node`` to disk and to read it back."""
    charset = node.charset or "utf-8"
    if node.charset_bom_marked and codecs.lookup(charset).name == "utf-8":
        return "utf-8-sig"
    return charset


def encode_node(node: SourceNode) -> bytes:
    return node.content.encode(node_codec(node))


def load_tree(root: Path) -> list[SourceNode]:
    """Read every decodable text file under ``root`` into a source node.

    Build output and VCS directories are skipped, as are files that do not
    decode as UTF-8.
    """
    nodes: list[SourceNode] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIPPED_DIRECTORIES)
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            raw = path.read_bytes()
            bom = raw.startswith(codecs.BOM_UTF8)
            try:
                content = raw.decode("utf-8-sig" if bom else "utf-8")
            except UnicodeDecodeError:
                continue
            nodes.append(
                SourceNode(
                    source_path=PurePath(path.relative_to(root).as_posix()),
                    content=content,
                    charset="utf-8",
                    charset_bom_marked=bom,
                )
            )
    return nodes


def write_tree(root: Path, nodes: list[SourceNode]) -> list[PurePath]:
    """Write ``nodes`` under ``root`` and return the relative paths written."""
    written: list[PurePath] = []
    for node in nodes:
        target = root / node.source_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(encode_node(node))
        written.append(node.source_path)
    return written
