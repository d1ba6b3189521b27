# booklingo/processors/pdf_operators.py
"""
Content-stream instruction building for re-flowed pages.

A PageContent is the ordered list of drawing instructions for one output
page. Text is drawn with absolute text matrices (Tm) inside BT/ET blocks,
images with a q/cm/Do/Q sequence.

Text is shown in the standard Helvetica font with WinAnsiEncoding;
characters outside cp1252 are replaced with "?".
"""

import logging
from typing import Any, NamedTuple

from .pdf_graph import Name, render_object

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_FONT_ID = "F1"
TEXT_ENCODING = "cp1252"


class Operation(NamedTuple):
    """One content-stream operator with its operands."""
    operator: str
    operands: tuple[Any, ...] = ()

    def render(self) -> str:
        if not self.operands:
            return self.operator
        return " ".join(render_object(op) for op in self.operands) + " " + self.operator


def encode_text(text: str) -> bytes:
    """
    Encode text for a WinAnsi simple font.

    Characters the font cannot show are replaced with "?".
    """
    return text.encode(TEXT_ENCODING, errors="replace")


class PageContent:
    """
    Drawing instructions for one output page.

    `in_text` is construction-time state (inside a BT/ET block); it is not
    part of the rendered page.
    """

    def __init__(self):
        self.operations: list[Operation] = []
        self.in_text = False
        self.used_images: set[str] = set()

    def begin_text(self, font_id: str, font_size: float) -> "PageContent":
        """Begin a text block (no-op if one is open)."""
        if not self.in_text:
            self.operations.append(Operation("rg", (0, 0, 0)))
            self.operations.append(Operation("BT"))
            self.operations.append(Operation("Tf", (Name(font_id), font_size)))
            self.in_text = True
        return self

    def end_text(self) -> "PageContent":
        """End the open text block (no-op if none is open)."""
        if self.in_text:
            self.operations.append(Operation("ET"))
            self.in_text = False
        return self

    def show_text(self, x: float, y: float, text: str) -> "PageContent":
        """Draw one line of text with its baseline at (x, y)."""
        if not self.in_text:
            raise RuntimeError("show_text() called outside a text block")
        self.operations.append(Operation("Tm", (1, 0, 0, 1, float(x), float(y))))
        self.operations.append(Operation("Tj", (encode_text(text),)))
        return self

    def draw_image(self, name: str, x: float, y: float, width: float, height: float) -> "PageContent":
        """Paint image XObject `name` with its lower-left corner at (x, y)."""
        self.end_text()
        self.operations.append(Operation("q"))
        self.operations.append(Operation("cm", (float(width), 0, 0, float(height), float(x), float(y))))
        self.operations.append(Operation("Do", (Name(name),)))
        self.operations.append(Operation("Q"))
        self.used_images.add(name)
        return self

    @property
    def is_empty(self) -> bool:
        return not self.operations

    @property
    def text_lines(self) -> list[str]:
        """Decoded text of every Tj on this page (for inspection and tests)."""
        return [
            op.operands[0].decode(TEXT_ENCODING)
            for op in self.operations
            if op.operator == "Tj"
        ]

    def build(self) -> bytes:
        """Render the operations as content-stream bytes."""
        if self.in_text:
            self.end_text()
        stream = "\n".join(op.render() for op in self.operations)
        return stream.encode("latin-1")
