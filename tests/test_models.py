# tests/test_models.py
"""Tests for booklingo.models.types and booklingo.services.exceptions"""

import dataclasses

import pytest

from booklingo.models.types import (
    Batch,
    ImageDescriptor,
    Snippet,
    TranslationResult,
    TranslationStatus,
)
from booklingo.services.exceptions import (
    BooklingoError,
    ExtractionError,
    IntegrityError,
    TranslationError,
)


class TestSnippet:

    def test_frozen(self):
        snippet = Snippet(index=0, text="a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            snippet.text = "b"

    def test_replace_keeps_identity(self):
        snippet = Snippet(index=3, text="a", unit_id="page_2")
        replaced = dataclasses.replace(snippet, text="b")
        assert (replaced.index, replaced.unit_id, replaced.text) == (3, "page_2", "b")


class TestBatch:

    def test_texts_and_ids(self):
        batch = Batch(index=1, snippets=[Snippet(0, "a", "p1"), Snippet(1, "b", "p2")])
        assert batch.texts == ["a", "b"]
        assert batch.unit_ids == ["p1", "p2"]
        assert len(batch) == 2


class TestImageDescriptor:

    def test_data_not_in_repr(self):
        image = ImageDescriptor(resource_id="Im1", data=b"\x00" * 1000, width=1, height=1)
        assert "\\x00" not in repr(image)
        assert image.size_bytes == 1000


class TestTranslationResult:

    def test_succeeded(self):
        assert TranslationResult(status=TranslationStatus.COMPLETED).succeeded
        assert not TranslationResult(status=TranslationStatus.FAILED).succeeded


class TestExceptions:
    """Tests for error context"""

    def test_hierarchy(self):
        for error_class in (ExtractionError, TranslationError, IntegrityError):
            assert issubclass(error_class, BooklingoError)

    def test_extraction_error_unit(self):
        error = ExtractionError("bad page", unit_id="page_3")
        assert error.unit_id == "page_3"
        assert "page_3" in str(error)

    def test_translation_error_context(self):
        error = TranslationError("timeout", batch_index=4, unit_ids=["page_2", "page_1", "page_2"])
        assert str(error) == "Batch 4 failed: timeout [units: page_1, page_2]"
        assert error.unit_ids == ("page_2", "page_1", "page_2")

    def test_integrity_error_sets(self):
        error = IntegrityError("mismatch", missing=["SPECIAL_TAG_1"], duplicated=["SPECIAL_TAG_0"])
        assert error.missing == frozenset({"SPECIAL_TAG_1"})
        assert error.unexpected == frozenset()
        assert "missing=['SPECIAL_TAG_1']" in str(error)
