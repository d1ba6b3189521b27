# booklingo/services/translation_service.py
"""
Translation service: picks a processor by file content and runs one job.

Flow:
    detect_file_type -> processor.translate_file(scheduler, port) -> TranslationResult

Errors never escape translate_file; they are logged and reported as a FAILED
result.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Optional
from zipfile import BadZipFile

from booklingo.config.settings import AppSettings
from booklingo.models.types import FileType, TranslationResult, TranslationStatus
from booklingo.processors.base import FileProcessor
from booklingo.services.batch_scheduler import BatchScheduler
from booklingo.services.exceptions import BooklingoError
from booklingo.services.translators import TranslationPort, create_translator

# Module logger
logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
ZIP_MAGIC = b"PK"

OUTPUT_EXTENSIONS = {
    FileType.PDF: ".pdf",
    FileType.EPUB: ".epub",
}


def detect_file_type(file_path: Path) -> FileType:
    """
    Identify the container by its leading bytes.

    %PDF -> PDF, PK (zip) -> EPUB, anything else -> UNSUPPORTED.
    """
    with open(file_path, "rb") as f:
        header = f.read(4)
    if header.startswith(PDF_MAGIC):
        return FileType.PDF
    if header.startswith(ZIP_MAGIC):
        return FileType.EPUB
    return FileType.UNSUPPORTED


class TranslationService:
    """
    Main translation service.
    Coordinates settings, the translation port and file processors.
    """

    def __init__(self, config: AppSettings, port: Optional[TranslationPort] = None):
        self.config = config
        self._port = port

        # Lazy-loaded file processors for faster startup
        self._processors: Optional[dict[FileType, FileProcessor]] = None
        self._processors_lock = threading.Lock()

    @property
    def port(self) -> TranslationPort:
        """Translation port; built from settings on first use."""
        if self._port is None:
            self._port = create_translator(self.config)
        return self._port

    @property
    def processors(self) -> dict[FileType, FileProcessor]:
        """
        Lazy-load file processors on first access (thread-safe).
        Defers the PyMuPDF, lxml and ebooklib imports until needed.
        """
        if self._processors is None:
            with self._processors_lock:
                # Double-check locking pattern for thread safety
                if self._processors is None:
                    from booklingo.processors.pdf_processor import PdfProcessor
                    from booklingo.processors.epub_processor import EpubProcessor

                    self._processors = {
                        FileType.PDF: PdfProcessor(self.config.pdf),
                        FileType.EPUB: EpubProcessor(),
                    }
        return self._processors

    def get_processor(self, file_type: FileType) -> FileProcessor:
        """Get the processor for a detected file type"""
        if file_type not in self.processors:
            raise ValueError(f"File type not currently supported: {file_type.value}")
        return self.processors[file_type]

    def _generate_output_path(self, input_path: Path, file_type: FileType) -> Path:
        """
        Generate unique output path.
        Adds _translated suffix, with numbering if file exists.
        """
        suffix = "_translated"
        stem = input_path.stem
        ext = OUTPUT_EXTENSIONS.get(file_type, input_path.suffix)

        output_dir = self.config.get_output_directory(input_path)

        output_path = output_dir / f"{stem}{suffix}{ext}"
        counter = 2
        while output_path.exists():
            output_path = output_dir / f"{stem}{suffix}_{counter}{ext}"
            counter += 1
        return output_path

    def translate_file(
        self,
        input_path: Path,
        output_path: Optional[Path] = None,
    ) -> TranslationResult:
        """
        Translate a PDF or EPUB file.

        Args:
            input_path: Path to input file
            output_path: Destination; generated next to the input (or in
                output_directory) when None

        Returns:
            TranslationResult; status FAILED with error_message on any error
        """
        start_time = time.monotonic()

        try:
            file_type = detect_file_type(input_path)
            if file_type == FileType.UNSUPPORTED:
                logger.error("File type not currently supported: %s", input_path)
                return TranslationResult(
                    status=TranslationStatus.FAILED,
                    error_message=f"File type not currently supported: {input_path}",
                    duration_seconds=time.monotonic() - start_time,
                )

            processor = self.get_processor(file_type)
            if output_path is None:
                output_path = self._generate_output_path(input_path, file_type)

            scheduler = BatchScheduler.from_options(self.config.request)
            logger.info("Translating %s (%s) -> %s", input_path, file_type.value, output_path)
            stats = processor.translate_file(input_path, output_path, scheduler, self.port)

        except (BooklingoError, OSError, BadZipFile, ValueError) as e:
            logger.exception("Translation failed: %s", e)
            return TranslationResult(
                status=TranslationStatus.FAILED,
                error_message=str(e),
                duration_seconds=time.monotonic() - start_time,
            )

        result = TranslationResult(
            status=TranslationStatus.COMPLETED,
            output_path=output_path,
            snippets_total=stats.get('snippets', 0),
            batches_total=stats.get('batches', 0),
            pages_written=stats.get('pages', 0),
            duration_seconds=time.monotonic() - start_time,
        )
        logger.info(
            "Translation completed: %d snippets in %d batches (%.1fs)",
            result.snippets_total, result.batches_total, result.duration_seconds
        )
        return result
