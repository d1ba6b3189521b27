# booklingo/processors/base.py
"""
Abstract base class for file processors.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from booklingo.models.types import FileType, Snippet
from booklingo.services.batch_scheduler import BatchScheduler
from booklingo.services.translators import TranslationPort


class FileProcessor(ABC):
    """
    Abstract base class for file processors.
    Each container format (PDF, EPUB) implements this interface.
    """

    @property
    @abstractmethod
    def file_type(self) -> FileType:
        """Return the file type this processor handles"""
        pass

    @property
    @abstractmethod
    def supported_extensions(self) -> list[str]:
        """Return list of supported file extensions"""
        pass

    @abstractmethod
    def extract_snippets(self, file_path: Path) -> list[Snippet]:
        """
        Extract translatable snippets in document order.

        Whitespace-only snippets are kept; filtering is up to the port.

        Raises:
            ExtractionError: The container cannot be parsed
        """
        pass

    @abstractmethod
    def translate_file(
        self,
        input_path: Path,
        output_path: Path,
        scheduler: BatchScheduler,
        port: TranslationPort,
    ) -> dict[str, Any]:
        """
        Translate input_path and write the result to output_path.

        Returns:
            Statistics dict with at least:
            - 'snippets': number of snippets translated
            - 'batches': number of batches submitted
            PdfProcessor also returns 'pages' (pages written).
        """
        pass

    def supports_extension(self, extension: str) -> bool:
        """Check if this processor supports the given file extension"""
        return extension.lower() in self.supported_extensions
