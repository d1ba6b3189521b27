# tests/test_pdf_assembler.py
"""
Tests for booklingo.processors.pdf_assembler - output object graph.
"""

import pytest

from booklingo.config.settings import PdfLayoutOptions
from booklingo.models.types import ImageDescriptor, PageUnit
from booklingo.processors.pdf_assembler import DocumentAssembler, image_dictionary, unique_images
from booklingo.processors.pdf_graph import Name, RawObject, Reference, Stream
from booklingo.processors.pdf_layout import PaginationEngine
from booklingo.processors.pdf_operators import PageContent
from booklingo.services.exceptions import AssemblyError


def descriptor(resource_id="Im1", data=b"\x01\x02", filters=("FlateDecode",), decode_parms=None):
    return ImageDescriptor(
        resource_id=resource_id,
        data=data,
        width=10,
        height=20,
        color_space="DeviceGray",
        bits_per_component=8,
        filters=filters,
        decode_parms=decode_parms,
    )


def objects_of_type(graph, type_name):
    result = []
    for _, obj in graph.items():
        dictionary = obj.dictionary if isinstance(obj, Stream) else obj
        if isinstance(dictionary, dict) and dictionary.get("Type") == Name(type_name):
            result.append(obj)
    return result


class TestImageDictionary:

    def test_single_filter_is_name(self):
        d = image_dictionary(descriptor())
        assert d["Filter"] == Name("FlateDecode")
        assert d["Subtype"] == Name("Image")
        assert (d["Width"], d["Height"]) == (10, 20)
        assert d["ColorSpace"] == Name("DeviceGray")
        assert "DecodeParms" not in d

    def test_filter_chain_is_array(self):
        d = image_dictionary(descriptor(filters=("FlateDecode", "DCTDecode")))
        assert d["Filter"] == [Name("FlateDecode"), Name("DCTDecode")]

    def test_no_filter(self):
        assert "Filter" not in image_dictionary(descriptor(filters=()))

    def test_decode_parms_copied(self):
        d = image_dictionary(descriptor(decode_parms="<</Predictor 15/Columns 10>>"))
        assert d["DecodeParms"] == RawObject("<</Predictor 15/Columns 10>>")


class TestUniqueImages:

    def test_repeats_dropped(self):
        image = descriptor()
        assert unique_images([image, image]) == [image]

    def test_conflicting_ids_rejected(self):
        with pytest.raises(AssemblyError):
            unique_images([descriptor(data=b"a"), descriptor(data=b"b")])


class TestDocumentAssembler:
    """Tests for graph construction"""

    def test_structure(self):
        engine = PaginationEngine()
        image = descriptor()
        pages = engine.paginate([
            PageUnit("page_1", ["Hello"], [image]),
            PageUnit("page_2", ["x"] * 30),
        ])
        assert len(pages) == 2

        graph = DocumentAssembler().assemble(pages, [image, image])

        # font + image + resources + pages + 2 * (content + page) + catalog
        assert len(graph) == 9
        assert len(objects_of_type(graph, "Font")) == 1
        assert len(objects_of_type(graph, "XObject")) == 1
        assert len(objects_of_type(graph, "Page")) == 2

        catalog = graph.get(graph.root_id)
        assert catalog["Type"] == Name("Catalog")
        page_tree = graph.get(catalog["Pages"].object_id)
        assert page_tree["Count"] == 2
        assert len(page_tree["Kids"]) == 2

    def test_page_tree_reserved_before_pages(self):
        graph = DocumentAssembler().assemble([PageContent()])
        catalog = graph.get(graph.root_id)
        pages_id = catalog["Pages"].object_id
        page_ids = [kid.object_id for kid in graph.get(pages_id)["Kids"]]
        assert all(pages_id < page_id for page_id in page_ids)
        for page_id in page_ids:
            assert graph.get(page_id)["Parent"] == Reference(pages_id)

    def test_pages_share_resources(self):
        engine = PaginationEngine()
        pages = engine.paginate([PageUnit("page_1", ["x"] * 40)])
        graph = DocumentAssembler().assemble(pages)
        resources = {page["Resources"] for page in objects_of_type(graph, "Page")}
        assert len(resources) == 1

    def test_media_box_from_options(self):
        options = PdfLayoutOptions(page_width=595.0, page_height=842.0)
        graph = DocumentAssembler(options).assemble([PageContent()])
        page = objects_of_type(graph, "Page")[0]
        assert page["MediaBox"] == [0, 0, 595.0, 842.0]

    def test_image_payload_copied_uncompressed(self):
        image = descriptor(data=b"\xff\xd8raw")
        graph = DocumentAssembler().assemble([PageContent()], [image])
        stream = objects_of_type(graph, "XObject")[0]
        assert stream.data == b"\xff\xd8raw"
        assert stream.compress is False

    def test_font_resource(self):
        graph = DocumentAssembler().assemble([PageContent()])
        font = objects_of_type(graph, "Font")[0]
        assert font["BaseFont"] == Name("Helvetica")
        assert font["Encoding"] == Name("WinAnsiEncoding")

    def test_no_pages_rejected(self):
        with pytest.raises(AssemblyError):
            DocumentAssembler().assemble([])

    def test_unknown_image_on_page_rejected(self):
        page = PageContent().draw_image("Im9", 0, 0, 1, 1)
        with pytest.raises(AssemblyError, match="Im9"):
            DocumentAssembler().assemble([page], [descriptor()])
