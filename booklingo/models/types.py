# booklingo/models/types.py
"""
Core data types for the Booklingo conversion pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class FileType(Enum):
    """Container formats recognised by content sniffing"""
    PDF = "pdf"
    EPUB = "epub"
    UNSUPPORTED = "unsupported"


class TranslationStatus(Enum):
    """Conversion job status"""
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Snippet:
    """
    One text unit to translate.

    `index` is the stable position in original document order; batches are
    cut by index contiguity, never by text value.
    """
    index: int
    text: str
    unit_id: str = ""                # Originating page / node id


@dataclass
class Batch:
    """
    Ordered group of contiguous snippets submitted in one translation call.
    """
    index: int
    snippets: list[Snippet] = field(default_factory=list)

    @property
    def texts(self) -> list[str]:
        return [s.text for s in self.snippets]

    @property
    def unit_ids(self) -> list[str]:
        return [s.unit_id for s in self.snippets]

    def __len__(self) -> int:
        return len(self.snippets)


@dataclass(frozen=True)
class ImageDescriptor:
    """
    Embedded image copied verbatim into the output document.

    `data` is the still-encoded stream payload; `filters` is the ordered
    decode chain (e.g. ("FlateDecode", "DCTDecode")) that applies to it.
    """
    resource_id: str
    data: bytes = field(repr=False)
    width: int
    height: int
    color_space: str = "DeviceRGB"
    bits_per_component: int = 8
    filters: tuple[str, ...] = ()
    decode_parms: Optional[str] = None   # PDF object syntax, copied as-is

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class PageUnit:
    """
    One source page after translation: its paragraphs in reading order and
    the images that were placed on it.
    """
    unit_id: str
    paragraphs: list[str] = field(default_factory=list)
    images: list[ImageDescriptor] = field(default_factory=list)


@dataclass
class TranslationResult:
    """
    Result of converting one file.
    """
    status: TranslationStatus
    output_path: Optional[Path] = None
    snippets_total: int = 0
    batches_total: int = 0
    pages_written: int = 0               # PDF only
    duration_seconds: float = 0.0
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == TranslationStatus.COMPLETED
