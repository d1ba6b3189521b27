# tests/test_base_processor.py
"""
Tests for booklingo.processors.base - Abstract FileProcessor base class.
Validates interface contract and default implementations.
"""

from abc import ABC

import pytest

from booklingo.models.types import FileType
from booklingo.processors.base import FileProcessor
from booklingo.processors.epub_processor import EpubProcessor
from booklingo.processors.pdf_processor import PdfProcessor


# =============================================================================
# Tests: Abstract Interface Contract
# =============================================================================

class TestAbstractInterface:
    """Tests for abstract interface contract"""

    def test_file_processor_is_abstract(self):
        """FileProcessor should be an abstract class"""
        assert issubclass(FileProcessor, ABC)

    def test_cannot_instantiate_base_class(self):
        """Cannot instantiate FileProcessor directly"""
        with pytest.raises(TypeError) as exc:
            FileProcessor()

        assert "abstract" in str(exc.value).lower()

    def test_abstract_methods_defined(self):
        """Verify all abstract methods are defined"""
        assert set(FileProcessor.__abstractmethods__) == {
            'file_type',
            'supported_extensions',
            'extract_snippets',
            'translate_file',
        }


# =============================================================================
# Tests: All Subclasses Implement Interface
# =============================================================================

class TestSubclassImplementation:
    """Tests that all subclasses properly implement the interface"""

    @pytest.fixture(params=[
        (PdfProcessor, FileType.PDF, '.pdf'),
        (EpubProcessor, FileType.EPUB, '.epub'),
    ])
    def processor_case(self, request):
        """Parametrized fixture for all processor classes"""
        return request.param

    def test_file_type(self, processor_case):
        processor_class, file_type, _ = processor_case
        assert processor_class().file_type == file_type

    def test_supported_extensions(self, processor_case):
        processor_class, _, extension = processor_case
        processor = processor_class()
        assert processor.supported_extensions == [extension]
        assert processor.supports_extension(extension.upper())
        assert not processor.supports_extension('.docx')
