# booklingo/processors/epub_processor.py
"""
Processor for EPUB files (.epub) using ebooklib.

Every spine document of media type application/xhtml+xml goes through
DomTextPipeline and is written back byte for byte (VerbatimHtml). Metadata,
styles, images and the cover are carried over by rewriting the same book
object.
"""

import logging
import zipfile
from pathlib import Path
from typing import Any, Iterator

from ebooklib import epub
from lxml import etree

from booklingo.models.types import FileType, Snippet
from booklingo.services.batch_scheduler import BatchScheduler
from booklingo.services.exceptions import ExtractionError
from booklingo.services.translators import TranslationPort

from .base import FileProcessor
from .markup_text import DomTextPipeline, MarkupTextDocument, protect_special_tags

# Module logger
logger = logging.getLogger(__name__)

XHTML_MEDIA_TYPE = "application/xhtml+xml"


class VerbatimHtml(epub.EpubHtml):
    """
    XHTML document written exactly as stored in `content`.

    EpubHtml.get_content() rebuilds the page from a template (new <head>, no
    prolog, no <body> attributes); page-list generation still reads the body
    through get_body_content().
    """

    def get_content(self, default=None):
        return self.content or default


class EpubProcessor(FileProcessor):
    """Processor for EPUB books (.epub)."""

    @property
    def file_type(self) -> FileType:
        return FileType.EPUB

    @property
    def supported_extensions(self) -> list[str]:
        return ['.epub']

    def _read_book(self, file_path: Path):
        logger.info("Reading %s...", file_path)
        try:
            return epub.read_epub(str(file_path), options={"ignore_ncx": False})
        except (zipfile.BadZipFile, KeyError, epub.EpubException, etree.XMLSyntaxError) as e:
            raise ExtractionError(f"Cannot open EPUB {file_path}: {e}") from e

    def _iter_documents(self, book) -> Iterator[tuple[str, Any, str]]:
        """
        Yield (item_id, item, markup) for every translatable spine document.

        Raises:
            ExtractionError: A spine entry has no manifest item, or a
                document is not UTF-8
        """
        for entry in book.spine:
            item_id = entry[0] if isinstance(entry, tuple) else entry
            item = book.get_item_with_id(item_id)
            if item is None:
                raise ExtractionError("Spine entry has no manifest item", unit_id=item_id)
            if item.media_type != XHTML_MEDIA_TYPE:
                logger.debug("Skipping spine item %s (%s)", item_id, item.media_type)
                continue
            if isinstance(item, epub.EpubNav):
                # Regenerated from the table of contents on write
                logger.debug("Skipping navigation document %s", item_id)
                continue

            # Raw document bytes; EpubHtml.get_content() would rebuild the page
            raw = item.content or b""
            try:
                markup = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw
            except UnicodeDecodeError as e:
                raise ExtractionError(f"Document is not UTF-8: {e}", unit_id=item_id) from e
            yield item_id, item, markup

    @staticmethod
    def _replace_document(book, item, content: bytes) -> None:
        """Swap a spine document for a VerbatimHtml holding `content`."""
        replacement = VerbatimHtml(
            uid=item.get_id(),
            file_name=item.file_name,
            media_type=XHTML_MEDIA_TYPE,
            content=content,
            title=getattr(item, "title", ""),
            lang=getattr(item, "lang", None),
            direction=getattr(item, "direction", None),
        )
        # Manifest properties (scripted, svg, ...) are read from the item on write
        replacement.properties = list(getattr(item, "properties", []))
        replacement.is_linear = item.is_linear
        replacement.book = item.book
        book.items[book.items.index(item)] = replacement

    def extract_snippets(self, file_path: Path) -> list[Snippet]:
        book = self._read_book(file_path)
        snippets: list[Snippet] = []
        for item_id, _item, markup in self._iter_documents(book):
            protected, _mapping = protect_special_tags(markup)
            document = MarkupTextDocument(protected, unit_id=item_id)
            for snippet in document.snippets():
                snippets.append(Snippet(
                    index=len(snippets),
                    text=snippet.text,
                    unit_id=snippet.unit_id,
                ))
        return snippets

    def translate_file(
        self,
        input_path: Path,
        output_path: Path,
        scheduler: BatchScheduler,
        port: TranslationPort,
    ) -> dict[str, Any]:
        book = self._read_book(input_path)
        pipeline = DomTextPipeline(scheduler, port)

        documents = 0
        for item_id, item, markup in self._iter_documents(book):
            translated = pipeline.translate_markup(markup, unit_id=item_id)
            self._replace_document(book, item, translated.encode("utf-8"))
            documents += 1
            logger.debug("Translated document %s", item_id)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing epub to %s...", output_path)
        epub.write_epub(str(output_path), book, {})

        return {
            'snippets': pipeline.snippets_total,
            'batches': pipeline.batches_total,
            'documents': documents,
        }
