# booklingo/processors/pdf_graph.py
"""
In-memory PDF object graph.

DocumentGraph is a mapping from object id to object plus a distinguished
root. It is created empty, populated append-only (ids may be reserved first
and filled in later), validated, and then handed to pdf_writer.

Object values use plain Python types:
- dict        -> PDF dictionary (keys are names)
- list/tuple  -> PDF array
- Name        -> /Name
- Reference   -> "n 0 R"
- Stream      -> dictionary + payload
- str         -> literal string, bytes -> hex string
- RawObject   -> PDF syntax copied verbatim (e.g. a source DecodeParms dict)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from booklingo.services.exceptions import AssemblyError

# Module logger
logger = logging.getLogger(__name__)

# Characters that must be #-escaped inside a PDF name
_RE_NAME_SPECIAL = re.compile(r"[^!-~]|[#/()<>\[\]{}%]")


class Name(str):
    """PDF name object (rendered as /Value)."""

    __slots__ = ()


class RawObject(str):
    """PDF object syntax inserted verbatim."""

    __slots__ = ()


@dataclass(frozen=True)
class Reference:
    """Indirect reference to another object in the same graph."""
    object_id: int


@dataclass
class Stream:
    """
    Stream object.

    compress=False marks a payload that is already encoded according to its
    /Filter entry and must be written byte-for-byte.
    """
    dictionary: dict = field(default_factory=dict)
    data: bytes = b""
    compress: bool = True


class DocumentGraph:
    """Append-only PDF object graph with two-phase id allocation."""

    def __init__(self):
        self._objects: dict[int, Any] = {}
        self._reserved: set[int] = set()
        self._next_id = 1
        self.root_id: Optional[int] = None

    def reserve(self) -> int:
        """Allocate an id whose object is supplied later via set_object()."""
        object_id = self._next_id
        self._next_id += 1
        self._reserved.add(object_id)
        return object_id

    def set_object(self, object_id: int, obj: Any) -> None:
        """Populate a reserved id. Each reserved id may be filled once."""
        if object_id not in self._reserved:
            if object_id in self._objects:
                raise AssemblyError(f"Object {object_id} is already populated")
            raise AssemblyError(f"Object {object_id} was never reserved")
        self._reserved.discard(object_id)
        self._objects[object_id] = obj

    def add_object(self, obj: Any) -> int:
        object_id = self.reserve()
        self.set_object(object_id, obj)
        return object_id

    def set_root(self, object_id: int) -> None:
        if object_id not in self._objects:
            raise AssemblyError(f"Root object {object_id} does not exist")
        self.root_id = object_id

    @property
    def trailer(self) -> dict:
        if self.root_id is None:
            raise AssemblyError("Document graph has no root object")
        return {"Root": Reference(self.root_id)}

    def get(self, object_id: int) -> Any:
        return self._objects[object_id]

    def ids(self) -> list[int]:
        return sorted(self._objects)

    def items(self) -> Iterator[tuple[int, Any]]:
        for object_id in self.ids():
            yield object_id, self._objects[object_id]

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, object_id: int) -> bool:
        return object_id in self._objects

    def validate(self) -> None:
        """
        Check structural invariants before serialisation.

        Raises:
            AssemblyError: unpopulated reservations, missing root, or
                references to ids that do not exist
        """
        if self._reserved:
            raise AssemblyError(f"Reserved objects never populated: {sorted(self._reserved)}")
        if self.root_id is None:
            raise AssemblyError("Document graph has no root object")
        for object_id, obj in self.items():
            for ref in iter_references(obj):
                if ref.object_id not in self._objects:
                    raise AssemblyError(
                        f"Object {object_id} references missing object {ref.object_id}"
                    )


def iter_references(obj: Any) -> Iterator[Reference]:
    """Yield every Reference reachable inside one (direct) object."""
    if isinstance(obj, Reference):
        yield obj
    elif isinstance(obj, Stream):
        yield from iter_references(obj.dictionary)
    elif isinstance(obj, dict):
        for value in obj.values():
            yield from iter_references(value)
    elif isinstance(obj, (list, tuple)):
        for value in obj:
            yield from iter_references(value)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:f}".rstrip("0").rstrip(".")


def _escape_name(value: str) -> str:
    return _RE_NAME_SPECIAL.sub(lambda m: "".join(f"#{b:02X}" for b in m.group(0).encode("utf-8")), value)


def _escape_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    return escaped.replace("\r", "\\r").replace("\n", "\\n")


def render_object(obj: Any, id_map: Optional[dict[int, int]] = None) -> str:
    """
    Render a direct object as PDF syntax.

    Args:
        obj: Object value (see module docstring for the type mapping)
        id_map: Optional graph-id -> output-xref mapping applied to references

    Raises:
        AssemblyError: for streams (not direct objects) and unsupported types
    """
    if obj is None:
        return "null"
    if isinstance(obj, bool):
        return "true" if obj else "false"
    if isinstance(obj, Name):
        return "/" + _escape_name(obj)
    if isinstance(obj, RawObject):
        return str(obj)
    if isinstance(obj, Reference):
        xref = id_map.get(obj.object_id, obj.object_id) if id_map else obj.object_id
        return f"{xref} 0 R"
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, float):
        return _format_number(obj)
    if isinstance(obj, str):
        return f"({_escape_literal(obj)})"
    if isinstance(obj, (bytes, bytearray)):
        return f"<{bytes(obj).hex().upper()}>"
    if isinstance(obj, (list, tuple)):
        return "[" + " ".join(render_object(v, id_map) for v in obj) + "]"
    if isinstance(obj, dict):
        entries = " ".join(
            f"/{_escape_name(str(key))} {render_object(value, id_map)}"
            for key, value in obj.items()
        )
        return f"<< {entries} >>" if entries else "<< >>"
    if isinstance(obj, Stream):
        raise AssemblyError("Streams must be indirect objects")
    raise AssemblyError(f"Cannot render {type(obj).__name__} as a PDF object")
