# booklingo/processors/pdf_assembler.py
"""
Builds the output PDF object graph from paginated content.

Object layout:
    font  -> one Type1 Helvetica font
    image -> one XObject per distinct ImageDescriptor (payload copied as-is)
    resources -> shared by all pages (font + every image)
    pages -> reserved first, populated after every page exists
    page / content stream -> one pair per PageContent
    catalog -> root, referenced by the trailer
"""

import logging
from typing import Iterable, Optional, Sequence

from booklingo.config.settings import PdfLayoutOptions
from booklingo.models.types import ImageDescriptor
from booklingo.services.exceptions import AssemblyError

from .pdf_graph import DocumentGraph, Name, RawObject, Reference, Stream
from .pdf_operators import DEFAULT_FONT_ID, PageContent

# Module logger
logger = logging.getLogger(__name__)


def image_dictionary(image: ImageDescriptor) -> dict:
    """Image XObject dictionary for a descriptor (no /Length; the writer sets it)."""
    dictionary = {
        "Type": Name("XObject"),
        "Subtype": Name("Image"),
        "Width": image.width,
        "Height": image.height,
        "ColorSpace": Name(image.color_space),
        "BitsPerComponent": image.bits_per_component,
    }
    if len(image.filters) == 1:
        dictionary["Filter"] = Name(image.filters[0])
    elif image.filters:
        dictionary["Filter"] = [Name(f) for f in image.filters]
    if image.decode_parms:
        dictionary["DecodeParms"] = RawObject(image.decode_parms)
    return dictionary


def unique_images(images: Iterable[ImageDescriptor]) -> list[ImageDescriptor]:
    """
    Drop repeated descriptors, keeping first-encounter order.

    Raises:
        AssemblyError: Two different images share one resource id
    """
    seen: dict[str, ImageDescriptor] = {}
    for image in images:
        existing = seen.get(image.resource_id)
        if existing is None:
            seen[image.resource_id] = image
        elif existing != image:
            raise AssemblyError(f"Conflicting images for resource id {image.resource_id}")
    return list(seen.values())


class DocumentAssembler:
    """Turns PageContent lists into a DocumentGraph."""

    def __init__(self, options: Optional[PdfLayoutOptions] = None, font_id: str = DEFAULT_FONT_ID):
        self.options = options or PdfLayoutOptions()
        self.font_id = font_id

    def assemble(
        self,
        pages: Sequence[PageContent],
        images: Iterable[ImageDescriptor] = (),
    ) -> DocumentGraph:
        """
        Build the complete graph.

        Args:
            pages: Ordered page contents from PaginationEngine
            images: Every image encountered during extraction

        Raises:
            AssemblyError: No pages, conflicting images, or a page painting
                an image that is not among the resources
        """
        if not pages:
            raise AssemblyError("Cannot assemble a document without pages")

        graph = DocumentGraph()

        font_id = graph.add_object({
            "Type": Name("Font"),
            "Subtype": Name("Type1"),
            "BaseFont": Name("Helvetica"),
            "Encoding": Name("WinAnsiEncoding"),
        })

        xobjects: dict[str, Reference] = {}
        for image in unique_images(images):
            image_id = graph.add_object(Stream(
                dictionary=image_dictionary(image),
                data=bytes(image.data),
                compress=False,
            ))
            xobjects[image.resource_id] = Reference(image_id)

        resources: dict = {"Font": {self.font_id: Reference(font_id)}}
        if xobjects:
            resources["XObject"] = dict(xobjects)
        resources_id = graph.add_object(resources)

        # Pages object is referenced by every page before it can be written
        pages_id = graph.reserve()

        media_box = [0, 0, self.options.page_width, self.options.page_height]
        page_refs: list[Reference] = []
        for page_number, page in enumerate(pages, start=1):
            missing = page.used_images - xobjects.keys()
            if missing:
                raise AssemblyError(
                    f"Page {page_number} paints images without resources: {sorted(missing)}"
                )
            content_id = graph.add_object(Stream(data=page.build()))
            page_id = graph.add_object({
                "Type": Name("Page"),
                "Parent": Reference(pages_id),
                "MediaBox": media_box,
                "Contents": Reference(content_id),
                "Resources": Reference(resources_id),
            })
            page_refs.append(Reference(page_id))

        graph.set_object(pages_id, {
            "Type": Name("Pages"),
            "Kids": page_refs,
            "Count": len(page_refs),
        })

        root_id = graph.add_object({
            "Type": Name("Catalog"),
            "Pages": Reference(pages_id),
        })
        graph.set_root(root_id)
        graph.validate()

        logger.debug(
            "Assembled graph: %d objects, %d pages, %d images",
            len(graph), len(page_refs), len(xobjects)
        )
        return graph
