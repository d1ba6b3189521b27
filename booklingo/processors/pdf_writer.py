# booklingo/processors/pdf_writer.py
"""
Serialises a DocumentGraph through PyMuPDF.

Each graph object is written into a fresh PyMuPDF document
(get_new_xref / update_object / update_stream); the graph root becomes the
document catalog. Saving with garbage collection drops the blank document's
own page tree and compacts the cross-reference table.
"""

import logging
from pathlib import Path
from typing import Union

from booklingo.services.exceptions import AssemblyError

from .pdf_graph import DocumentGraph, Stream, render_object

# Module logger
logger = logging.getLogger(__name__)

# Stream keys MuPDF drops when storing an already-encoded payload
_ENCODING_KEYS = ("Filter", "DecodeParms")

_pymupdf = None


def _get_pymupdf():
    """Lazy import PyMuPDF"""
    global _pymupdf
    if _pymupdf is None:
        import pymupdf
        _pymupdf = pymupdf
    return _pymupdf


def build_document(graph: DocumentGraph):
    """
    Materialise the graph as a PyMuPDF document.

    Returns:
        pymupdf.Document (caller closes it)

    Raises:
        AssemblyError: The graph is invalid or PyMuPDF rejects an object
    """
    graph.validate()
    pymupdf = _get_pymupdf()
    doc = pymupdf.open()

    try:
        id_map: dict[int, int] = {}
        for object_id in graph.ids():
            if object_id == graph.root_id:
                id_map[object_id] = doc.pdf_catalog()
            else:
                id_map[object_id] = doc.get_new_xref()

        for object_id, obj in graph.items():
            xref = id_map[object_id]
            if isinstance(obj, Stream):
                doc.update_object(xref, render_object(obj.dictionary, id_map))
                if obj.compress:
                    doc.update_stream(xref, obj.data)
                else:
                    doc.update_stream(xref, obj.data, compress=False)
                    # update_stream() removes the encoding keys of raw payloads
                    for key in _ENCODING_KEYS:
                        if key in obj.dictionary:
                            doc.xref_set_key(xref, key, render_object(obj.dictionary[key], id_map))
            else:
                doc.update_object(xref, render_object(obj, id_map))
    except (RuntimeError, ValueError) as e:
        doc.close()
        raise AssemblyError(f"PyMuPDF rejected object graph: {e}") from e

    logger.debug("Materialised %d objects (root xref %d)", len(graph), id_map[graph.root_id])
    return doc


def graph_to_bytes(graph: DocumentGraph) -> bytes:
    """Serialise the graph to PDF bytes."""
    doc = build_document(graph)
    try:
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()


def write_graph(graph: DocumentGraph, output_path: Union[str, Path]) -> None:
    """Serialise the graph to a file."""
    logger.info("Writing pdf to %s...", output_path)
    doc = build_document(graph)
    try:
        doc.save(str(output_path), garbage=3, deflate=True, use_objstms=1)
    except (RuntimeError, ValueError) as e:
        raise AssemblyError(f"Failed to save {output_path}: {e}") from e
    finally:
        doc.close()
