# booklingo/processors/pdf_processor.py
"""
Page path: PDF -> snippets -> translation -> re-flowed PDF.

    PdfSnippetExtractor -> BatchScheduler(+TranslationPort)
        -> PaginationEngine -> DocumentAssembler -> pdf_writer

Pagination and assembly run single-threaded, strictly after every batch of
the document has been collected and reordered.
"""

import logging
from pathlib import Path
from typing import Any, Optional

from booklingo.config.settings import PdfLayoutOptions
from booklingo.models.types import FileType, Snippet
from booklingo.services.batch_scheduler import BatchScheduler
from booklingo.services.translators import TranslationPort

from .base import FileProcessor
from .pdf_assembler import DocumentAssembler
from .pdf_extractor import PdfSnippetExtractor
from .pdf_layout import PaginationEngine
from .pdf_writer import write_graph

# Module logger
logger = logging.getLogger(__name__)


class PdfProcessor(FileProcessor):
    """Processor for PDF files (.pdf)."""

    def __init__(self, options: Optional[PdfLayoutOptions] = None):
        self.options = options or PdfLayoutOptions()
        self.extractor = PdfSnippetExtractor()

    @property
    def file_type(self) -> FileType:
        return FileType.PDF

    @property
    def supported_extensions(self) -> list[str]:
        return ['.pdf']

    def extract_snippets(self, file_path: Path) -> list[Snippet]:
        return self.extractor.extract(file_path).snippets

    def translate_file(
        self,
        input_path: Path,
        output_path: Path,
        scheduler: BatchScheduler,
        port: TranslationPort,
    ) -> dict[str, Any]:
        extraction = self.extractor.extract(input_path)
        translated = scheduler.run(extraction.snippets, port)

        engine = PaginationEngine(self.options)
        pages = engine.paginate(extraction.to_page_units(translated))

        assembler = DocumentAssembler(self.options, font_id=engine.font_id)
        graph = assembler.assemble(pages, extraction.all_images)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        write_graph(graph, output_path)

        return {
            'snippets': len(extraction.snippets),
            'batches': scheduler.count_batches(len(extraction.snippets)),
            'pages': len(pages),
        }
