from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest


# Ensure the project root is importable when running `pytest` via its entrypoint
# (e.g., `uv run --extra test pytest`), where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# =============================================================================
# Translation port doubles
# =============================================================================

class UpperTranslator:
    """Port that upper-cases every snippet and records each call."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def translate(self, texts):
        with self._lock:
            self.calls.append(list(texts))
        return [text.upper() for text in texts]


class FailingTranslator:
    """Port that raises for any batch containing `trigger`."""

    def __init__(self, trigger: str = "boom"):
        self.trigger = trigger
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def translate(self, texts):
        with self._lock:
            self.calls.append(list(texts))
        if any(self.trigger in text for text in texts):
            raise RuntimeError(f"provider rejected {self.trigger!r}")
        time.sleep(0.05)
        return list(texts)


@pytest.fixture
def upper_translator():
    return UpperTranslator()


# =============================================================================
# Document builders
# =============================================================================

def make_png(width: int = 100, height: int = 100, color: int = 0x80, gray: bool = False) -> bytes:
    import pymupdf

    colorspace = pymupdf.csGRAY if gray else pymupdf.csRGB
    pix = pymupdf.Pixmap(colorspace, pymupdf.IRect(0, 0, width, height), False)
    pix.clear_with(color)
    return pix.tobytes("png")


def make_pdf(path: Path, pages: list[list[str]], image_pages: tuple[int, ...] = ()) -> Path:
    """
    Write a PDF with one text line per paragraph (100pt apart, so each line is
    its own block) and an optional 100x100 image on the listed pages.
    """
    import pymupdf

    doc = pymupdf.open()
    png = make_png() if image_pages else None
    for number, paragraphs in enumerate(pages):
        page = doc.new_page()
        y = 72
        for text in paragraphs:
            page.insert_text((72, y), text, fontsize=11)
            y += 100
        if number in image_pages:
            page.insert_image(pymupdf.Rect(72, 600, 172, 700), stream=png)
    # Flate-encode every stream so image payloads always carry a /Filter
    doc.save(str(path), deflate=True, deflate_images=True)
    doc.close()
    return path


@pytest.fixture
def sample_pdf(tmp_path):
    return make_pdf(
        tmp_path / "sample.pdf",
        [["Hello world", "Second paragraph"], ["Last page"]],
        image_pages=(0,),
    )


def make_epub(path: Path, chapters: list[str], stylesheet: bool = False) -> Path:
    """
    Write an EPUB whose chapters have the given <body> contents, optionally
    linking every chapter to a shared style.css.
    """
    from ebooklib import epub

    book = epub.EpubBook()
    book.set_identifier("booklingo-test")
    book.set_title("Test Book")
    book.set_language("en")

    if stylesheet:
        book.add_item(epub.EpubItem(
            uid="style", file_name="style.css", media_type="text/css", content=b"p { margin: 0 }",
        ))

    items = []
    for number, body in enumerate(chapters, start=1):
        chapter = epub.EpubHtml(
            uid=f"chap_{number}",
            title=f"Chapter {number}",
            file_name=f"chap_{number}.xhtml",
            lang="en",
        )
        chapter.content = (
            f"<html><head><title>Chapter {number}</title></head>"
            f"<body>{body}</body></html>"
        )
        if stylesheet:
            chapter.add_link(href="style.css", rel="stylesheet", type="text/css")
        book.add_item(chapter)
        items.append(chapter)

    book.toc = items
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", *items]
    epub.write_epub(str(path), book, {})
    return path


@pytest.fixture
def sample_epub(tmp_path):
    return make_epub(
        tmp_path / "sample.epub",
        [
            '<h1>Chapter one</h1><p>Hello <b>world</b>.</p>'
            '<span epub:type="pagebreak" id="page2" title="2"></span>'
            '<p>Next page</p>',
            '<p>Second chapter</p>',
        ],
    )
