# booklingo/processors/pdf_extractor.py
"""
Snippet and image extraction for the page path (PyMuPDF).

Snippets are the text blocks of each page in reading order, tagged with the
page id. Images are read as raw (still encoded) streams together with their
filter chain so they can be copied into the output without re-encoding.
Images whose samples do not fit a Device colour space (palettes, spot
colours, Lab) are decoded to Device samples instead.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from booklingo.models.types import ImageDescriptor, PageUnit, Snippet
from booklingo.services.exceptions import ExtractionError

from .pdf_writer import _get_pymupdf

# Module logger
logger = logging.getLogger(__name__)

DEVICE_COLOR_SPACES = frozenset({"DeviceGray", "DeviceRGB", "DeviceCMYK"})

# ICC profile component count (/N) -> device space with the same sample layout
ICC_DEVICE_SPACES = {1: "DeviceGray", 3: "DeviceRGB", 4: "DeviceCMYK"}

# PyMuPDF text block tuple: (x0, y0, x1, y1, text, block_no, block_type)
_BLOCK_TEXT = 4
_BLOCK_TYPE = 6
_TEXT_BLOCK = 0

_RE_PDF_NAME = re.compile(r"/([^\s/\[\]<>()]+)")
_RE_ICC_PROFILE = re.compile(r"/ICCBased\s+(\d+)\s+\d+\s+R")


def page_unit_id(page_number: int) -> str:
    """Stable unit id for a 0-based page number."""
    return f"page_{page_number + 1}"


@dataclass
class PdfExtraction:
    """
    Everything the page path needs from a source PDF.

    Attributes:
        snippets: text blocks in document order (index = position)
        unit_ids: page ids in page order
        images: page id -> images in encounter order
    """
    snippets: list[Snippet] = field(default_factory=list)
    unit_ids: list[str] = field(default_factory=list)
    images: dict[str, list[ImageDescriptor]] = field(default_factory=dict)

    @property
    def all_images(self) -> list[ImageDescriptor]:
        return [image for unit_id in self.unit_ids for image in self.images.get(unit_id, [])]

    def to_page_units(self, translated: Sequence[Snippet]) -> list[PageUnit]:
        """
        Regroup translated snippets by page.

        Raises:
            ExtractionError: A translated snippet names an unknown page
        """
        units = {unit_id: PageUnit(unit_id=unit_id, images=list(self.images.get(unit_id, [])))
                 for unit_id in self.unit_ids}
        for snippet in translated:
            unit = units.get(snippet.unit_id)
            if unit is None:
                raise ExtractionError("Translated snippet has no source page", unit_id=snippet.unit_id)
            unit.paragraphs.append(snippet.text)
        return [units[unit_id] for unit_id in self.unit_ids]


def _parse_names(value: str) -> tuple[str, ...]:
    return tuple(_RE_PDF_NAME.findall(value))


class PdfSnippetExtractor:
    """Reads text blocks and images from a PDF file."""

    def extract(self, file_path: Path) -> PdfExtraction:
        """
        Extract snippets and images.

        Raises:
            ExtractionError: The file cannot be opened or parsed as a PDF
        """
        logger.info("Reading %s...", file_path)
        pymupdf = _get_pymupdf()
        try:
            doc = pymupdf.open(str(file_path))
        except (RuntimeError, ValueError, OSError) as e:
            raise ExtractionError(f"Cannot open PDF {file_path}: {e}") from e

        try:
            if doc.needs_pass:
                raise ExtractionError(f"PDF {file_path} is encrypted")
            return self._extract_document(doc)
        except (RuntimeError, ValueError, KeyError) as e:
            raise ExtractionError(f"Cannot parse PDF {file_path}: {e}") from e
        finally:
            doc.close()

    def _extract_document(self, doc) -> PdfExtraction:
        extraction = PdfExtraction()
        # One descriptor per image xref, shared by every page that shows it
        descriptors: dict[int, ImageDescriptor] = {}

        for page in doc:
            unit_id = page_unit_id(page.number)
            extraction.unit_ids.append(unit_id)

            for block in page.get_text("blocks", sort=True):
                if block[_BLOCK_TYPE] != _TEXT_BLOCK:
                    continue
                extraction.snippets.append(Snippet(
                    index=len(extraction.snippets),
                    text=block[_BLOCK_TEXT],
                    unit_id=unit_id,
                ))

            page_images = []
            for info in page.get_images(full=True):
                xref = info[0]
                if xref not in descriptors:
                    descriptor = self._read_image(doc, info, f"Im{len(descriptors) + 1}")
                    if descriptor is None:
                        continue
                    descriptors[xref] = descriptor
                page_images.append(descriptors[xref])
            extraction.images[unit_id] = page_images

            logger.debug(
                "Extracted %s: %d snippets so far, %d images on page",
                unit_id, len(extraction.snippets), len(page_images)
            )

        logger.info(
            "Extracted %d snippets and %d images from %d pages",
            len(extraction.snippets), len(descriptors), len(extraction.unit_ids)
        )
        return extraction

    def _read_image(self, doc, info: tuple, resource_id: str) -> Optional[ImageDescriptor]:
        """
        Build a descriptor from a page.get_images(full=True) entry.

        Entry layout: (xref, smask, width, height, bpc, colorspace,
        alt_colorspace, name, filter, referencer)
        """
        xref, _smask, width, height, bpc, colorspace, alt_colorspace = info[:7]
        if width <= 0 or height <= 0:
            logger.warning("Skipping image xref %d with invalid size %dx%d", xref, width, height)
            return None

        color_space = self._resolve_color_space(doc, xref, colorspace)
        if color_space is None:
            logger.debug("Image xref %d: decoding %s image (alternate %r)",
                         xref, colorspace or "unnamed", alt_colorspace)
            return self._decode_image(doc, xref, resource_id)

        data = doc.xref_stream_raw(xref)
        if data is None:
            logger.warning("Skipping image xref %d without stream data", xref)
            return None

        return ImageDescriptor(
            resource_id=resource_id,
            data=bytes(data),
            width=width,
            height=height,
            color_space=color_space,
            bits_per_component=bpc or 8,
            filters=self._read_filters(doc, xref),
            decode_parms=self._read_decode_parms(doc, xref),
        )

    def _resolve_color_space(self, doc, xref: int, colorspace: str) -> Optional[str]:
        """
        Device colour space whose component count matches the raw samples.

        ICCBased spaces map by their /N entry. Returns None for spaces the
        raw stream cannot be copied under (Indexed, Separation, Lab, ...).
        """
        if colorspace in DEVICE_COLOR_SPACES:
            return colorspace
        if colorspace == "ICCBased":
            components = self._icc_components(doc, xref)
            return ICC_DEVICE_SPACES.get(components)
        return None

    def _icc_components(self, doc, xref: int) -> Optional[int]:
        _kind, value = self._resolve_key(doc, xref, "ColorSpace")
        match = _RE_ICC_PROFILE.search(value)
        if match is None:
            return None
        kind, components = doc.xref_get_key(int(match.group(1)), "N")
        if kind != "int":
            return None
        return int(components)

    def _decode_image(self, doc, xref: int, resource_id: str) -> Optional[ImageDescriptor]:
        """
        Decode an image to 8-bit Device samples (palette lookups expanded).

        The samples are stored unfiltered; the writer compresses them on save.
        """
        pymupdf = _get_pymupdf()
        pix = pymupdf.Pixmap(doc, xref)
        if pix.colorspace is None:
            logger.warning("Skipping image xref %d without colour space (stencil mask)", xref)
            return None
        if pix.alpha:
            pix = pymupdf.Pixmap(pix, 0)
        if pix.colorspace.name not in DEVICE_COLOR_SPACES:
            pix = pymupdf.Pixmap(pymupdf.csRGB, pix)

        return ImageDescriptor(
            resource_id=resource_id,
            data=bytes(pix.samples),
            width=pix.width,
            height=pix.height,
            color_space=pix.colorspace.name,
            bits_per_component=8,
        )

    @staticmethod
    def _resolve_key(doc, xref: int, key: str) -> tuple[str, str]:
        kind, value = doc.xref_get_key(xref, key)
        if kind == "xref":
            target = int(value.split()[0])
            return "object", doc.xref_object(target, compressed=True)
        return kind, value

    def _read_filters(self, doc, xref: int) -> tuple[str, ...]:
        kind, value = self._resolve_key(doc, xref, "Filter")
        if kind == "null":
            return ()
        return _parse_names(value)

    def _read_decode_parms(self, doc, xref: int) -> Optional[str]:
        kind, value = self._resolve_key(doc, xref, "DecodeParms")
        if kind == "null" or not value:
            return None
        return value
